"""Signal decoders: raw recognition output -> typed signals."""

from tirehealth.decoders.defects import decode_defect, decode_defects
from tirehealth.decoders.sidewall import decode_dot_code, decode_tire_size
from tirehealth.decoders.tread import decode_tread_depth

__all__ = [
    "decode_tread_depth",
    "decode_tire_size",
    "decode_dot_code",
    "decode_defect",
    "decode_defects",
]
