import os
from typing import Callable, Dict, TypeVar

from dotenv import dotenv_values

from .env import Env, PrimaryType

T = TypeVar("T", bound=Env)

ENV_FILE_VARIABLE = "STAGELINE_ENV_FILE"


def _coerce(
    envars: Dict[str, Callable[[str], PrimaryType]],
    source: Dict[str, str | None],
) -> Dict[str, PrimaryType]:
    return {
        name: envars[name](value)
        for name, value in source.items()
        if name in envars and value
    }


def load_env(
    default: type[T] = Env,
    env_file: str | None = None,
    override: T | None = None,
) -> T:
    """
    Builds settings from, in rising precedence, the process environment,
    a dotenv file and the explicitly set fields of ``override``.

    The dotenv file is ``env_file`` if given, else the path named by
    STAGELINE_ENV_FILE, else ``.env`` in the working directory. A missing
    file is skipped.
    """
    envars = default.types_map()

    if env_file is None:
        env_file = os.getenv(ENV_FILE_VARIABLE, ".env")

    values = _coerce(envars, dict(os.environ))

    if os.path.exists(env_file):
        values.update(
            _coerce(envars, dotenv_values(dotenv_path=env_file))
        )

    model = default
    if override:
        values.update(override.model_dump(exclude_unset=True))
        model = type(override)

    return model(**values)
