from __future__ import annotations

from typing import TYPE_CHECKING, Any, TypeVar

import pydantic
from packaging import version

from .logger import get_logger

if TYPE_CHECKING:
    from pydantic import BaseModel

T = TypeVar("T", bound="BaseModel")

logger = get_logger("ws_chat_client.utils")


# Helper methods for supporting Pydantic v1 and v2
def is_pydantic_pre_v2() -> bool:
    return version.parse(pydantic.VERSION) < version.parse("2.0.0")


def pydantic_serialize(model: BaseModel, **kwargs: Any) -> str:
    if is_pydantic_pre_v2():
        return model.json(**kwargs)
    return model.model_dump_json(**kwargs)


def pydantic_parse(model: type[T], data: dict[str, Any], **kwargs: Any) -> T:
    logger.debug(f"Using pydantic to parse: {data}")
    if is_pydantic_pre_v2():
        parsed_data = model.parse_obj(data, **kwargs)
    else:
        parsed_data = model.model_validate(data, **kwargs)
    logger.debug(f"Pydantic parsed data: {parsed_data}")
    return parsed_data
