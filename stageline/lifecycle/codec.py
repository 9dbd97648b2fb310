ACK_PREFIX = "ACK: "


def decode_payload(
    payload: bytes,
    encoding: str = "utf-8",
) -> str:
    return payload.decode(encoding, errors="replace")


def acknowledge(
    text: str,
    encoding: str = "utf-8",
) -> bytes:
    return (ACK_PREFIX + text).encode(encoding)
