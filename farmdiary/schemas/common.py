"""Shared pydantic base classes and lenient coercion helpers."""

from __future__ import annotations

import math
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict
from pydantic.alias_generators import to_camel


def coerce_number(value: Any) -> int | float | None:
	"""Numeric value or ``None``; integral values come back as ``int``."""
	if value is None or isinstance(value, bool):
		return None
	if isinstance(value, (int, float)):
		number = float(value)
	elif isinstance(value, str):
		text = value.strip()
		if not text:
			return None
		try:
			number = float(text)
		except ValueError:
			return None
	else:
		return None
	if not math.isfinite(number):
		return None
	if isinstance(value, int):
		return value
	return int(number) if number.is_integer() and not isinstance(value, float) else number


def coerce_text(value: Any) -> str | None:
	if value is None:
		return None
	if isinstance(value, str):
		return value
	if isinstance(value, (int, float)) and not isinstance(value, bool):
		return str(value)
	return None


def coerce_identifier(value: Any) -> Any:
	"""Numeric ids become strings; anything else is left to validation."""
	if isinstance(value, (int, float)) and not isinstance(value, bool):
		return str(value)
	return value


Number = Annotated[int | float | None, BeforeValidator(coerce_number)]
Text = Annotated[str | None, BeforeValidator(coerce_text)]
Identifier = Annotated[str, BeforeValidator(coerce_identifier)]
Ref = Annotated[str | None, BeforeValidator(coerce_text)]
Label = Annotated[str, BeforeValidator(lambda value: coerce_text(value) or "")]


class CamelModel(BaseModel):
	"""camelCase on the wire, snake_case in Python."""

	model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
