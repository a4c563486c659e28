from .bars import load_bars, resample_bars, validate_bars

__all__ = ["load_bars", "resample_bars", "validate_bars"]
