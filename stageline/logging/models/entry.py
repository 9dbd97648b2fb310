from typing import Any

import msgspec

from .log_level import LogLevel


class Entry(msgspec.Struct, kw_only=True):
    message: str
    level: LogLevel = LogLevel.INFO

    def to_template(
        self,
        template: str,
        context: dict[str, Any] | None = None,
    ) -> str:
        if context is None:
            context = {}

        values = msgspec.structs.asdict(self)
        values["level"] = self.level.value
        values.update(context)

        return template.format(**values)
