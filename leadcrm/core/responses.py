from decimal import Decimal
from typing import Any, Optional

from fastapi.encoders import jsonable_encoder

# Money is Decimal internally and a JSON number on the wire
_ENCODERS = {Decimal: float}


def api_success(data: Any = None, message: Optional[str] = None) -> dict:
    body = {"success": True}
    if data is not None:
        body["data"] = jsonable_encoder(data, custom_encoder=_ENCODERS)
    if message:
        body["message"] = message
    return body
