"""Named frequency band presets."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from bandsweep.dsp.bins import FrequencyBand


@dataclass
class BandPreset:
    name: str
    low_hz: float
    high_hz: float
    description: Optional[str] = None

    def to_band(self) -> FrequencyBand:
        return FrequencyBand(self.low_hz, self.high_hz, name=self.name)


def default_band_presets() -> Dict[str, BandPreset]:
    presets = [
        BandPreset("sub_bass", 20.0, 60.0, "Rumble felt more than heard"),
        BandPreset("bass", 60.0, 250.0, "Kick drum and bass fundamentals"),
        BandPreset("low_mid", 250.0, 500.0, "Body of most instruments"),
        BandPreset("mid", 500.0, 2000.0, "Vocals and lead instruments"),
        BandPreset("upper_mid", 2000.0, 4000.0, "Attack and intelligibility"),
        BandPreset("presence", 4000.0, 6000.0, "Definition and edge"),
        BandPreset("brilliance", 6000.0, 20000.0, "Air, cymbals, sibilance"),
    ]
    return {preset.name: preset for preset in presets}


def resolve_band(name: str) -> Optional[BandPreset]:
    """Look up a preset by name, ignoring case and dashes."""
    key = str(name).strip().lower().replace("-", "_")
    return default_band_presets().get(key)


def serialize_presets() -> Dict[str, Dict[str, Any]]:
    return {name: asdict(preset) for name, preset in default_band_presets().items()}
