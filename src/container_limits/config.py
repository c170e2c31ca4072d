"""Runtime settings from the environment; loads .env locally via python-dotenv."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from container_limits.admission import AdmissionRule
from container_limits.evaluation import NEAR_LIMIT_PERCENT

# does not override variables already set in the environment
load_dotenv()


@dataclass(frozen=True)
class Settings:
    database_url: Optional[str]
    log_level: str
    admission_rule: AdmissionRule
    near_limit_percent: float


def load_settings() -> Settings:
    rule = os.getenv("ADMISSION_RULE", AdmissionRule.EITHER.value).strip().lower()
    try:
        admission_rule = AdmissionRule(rule)
    except ValueError:
        raise ValueError(
            f"ADMISSION_RULE must be one of {[r.value for r in AdmissionRule]}, got '{rule}'"
        ) from None

    return Settings(
        database_url=os.getenv("DATABASE_URL") or None,
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        admission_rule=admission_rule,
        near_limit_percent=float(os.getenv("NEAR_LIMIT_PERCENT", str(NEAR_LIMIT_PERCENT))),
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
