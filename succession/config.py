import os
from dataclasses import dataclass
from typing import List

ONE_DAY = 24 * 60 * 60


@dataclass
class SuccessionConfig:
    """Heir quorum and lock-in configuration for an account"""

    heirs: List[str]
    threshold: int
    delay_seconds: int

    @classmethod
    def majority(cls, heirs: List[str], delay_seconds: int = ONE_DAY) -> 'SuccessionConfig':
        """Simple majority of heirs, one day lock-in"""
        return cls(
            heirs=list(heirs),
            threshold=len(heirs) // 2 + 1,
            delay_seconds=delay_seconds,
        )

    @classmethod
    def unanimous(cls, heirs: List[str], delay_seconds: int = 30 * ONE_DAY) -> 'SuccessionConfig':
        """Every heir must sign, thirty day lock-in"""
        return cls(
            heirs=list(heirs),
            threshold=len(heirs),
            delay_seconds=delay_seconds,
        )

    def validate(self) -> tuple[bool, str]:
        """Validate configuration without raising"""
        if not (1 <= self.threshold <= len(self.heirs)):
            return False, f"Threshold {self.threshold} must be between 1 and {len(self.heirs)}"

        if len({h.lower() for h in self.heirs}) != len(self.heirs):
            return False, "Heirs must be distinct"

        if self.delay_seconds < 0:
            return False, f"Delay must be non-negative, got {self.delay_seconds}"

        return True, "Valid configuration"


@dataclass
class ServiceSettings:
    """Settings for the JSON service, read from the environment"""

    host: str = "0.0.0.0"
    port: int = 10000
    log_level: str = "INFO"
    default_delay_seconds: int = ONE_DAY

    @classmethod
    def from_env(cls, environ=None) -> 'ServiceSettings':
        env = os.environ if environ is None else environ
        return cls(
            host=env.get("HOST", cls.host),
            port=int(env.get("PORT", cls.port)),
            log_level=env.get("SUCCESSION_LOG_LEVEL", cls.log_level).upper(),
            default_delay_seconds=int(env.get("SUCCESSION_DEFAULT_DELAY", cls.default_delay_seconds)),
        )
