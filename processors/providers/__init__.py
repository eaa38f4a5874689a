from .models import EMPTY_MODEL, model_field_override, model_overrides

__all__ = ["EMPTY_MODEL", "model_field_override", "model_overrides"]
