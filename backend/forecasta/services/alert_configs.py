from datetime import datetime, timezone

import structlog
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from forecasta.models.alert import AlertConfig
from forecasta.services.monitoring.defaults import DEFAULT_ALERT_CONFIGS

logger = structlog.get_logger(__name__)


class ConfigConflict(Exception):
    pass


def enabled_config(session: Session, demo_id: str, alert_type: str):
    return session.exec(
        select(AlertConfig)
        .where(AlertConfig.demo_id == demo_id)
        .where(AlertConfig.alert_type == alert_type)
        .where(AlertConfig.is_enabled == True)  # noqa: E712
    ).first()


def initialize_alert_configs(session: Session, demo_id: str) -> list[AlertConfig]:
    """Seed the default config set for a tenant; types it already has are left alone."""
    existing = {
        c.alert_type for c in session.exec(select(AlertConfig).where(AlertConfig.demo_id == demo_id)).all()
    }
    created = []
    for d in DEFAULT_ALERT_CONFIGS:
        if d["alert_type"] in existing:
            continue
        cfg = AlertConfig(
            demo_id=demo_id,
            alert_type=d["alert_type"],
            is_enabled=d["is_enabled"],
            check_frequency=d["check_frequency"],
            threshold_config=dict(d["threshold_config"]),
            notification_channels=["in_app", "email"],
        )
        session.add(cfg)
        created.append(cfg)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        logger.warning("alert_configs_seed_conflict", demo_id=demo_id)
        return []
    for cfg in created:
        session.refresh(cfg)
    logger.info("alert_configs_initialized", demo_id=demo_id, created=len(created))
    return created


def upsert_alert_config(session: Session, demo_id: str, data: dict) -> AlertConfig:
    """Create or update a config.

    Raises ConfigConflict when it would leave two enabled configs of one type and
    ValueError when an update names a type other than the stored one.
    """
    now = datetime.now(timezone.utc)
    cfg = None
    if data.get("id"):
        cfg = session.get(AlertConfig, data["id"])
        if cfg is None or cfg.demo_id != demo_id:
            raise LookupError("Alert config not found")
        if data.get("alert_type") and data["alert_type"] != cfg.alert_type:
            raise ValueError(f"alert_type cannot be changed (config is {cfg.alert_type})")

    alert_type = cfg.alert_type if cfg else data.get("alert_type")
    is_enabled = data["is_enabled"] if data.get("is_enabled") is not None else (cfg.is_enabled if cfg else True)

    if is_enabled:
        other = enabled_config(session, demo_id, alert_type)
        if other is not None and (cfg is None or other.id != cfg.id):
            raise ConfigConflict(f"An enabled {alert_type} config already exists")

    if cfg is None:
        cfg = AlertConfig(demo_id=demo_id, alert_type=alert_type, created_at=now)
    cfg.is_enabled = is_enabled
    for key in ("check_frequency", "threshold_config", "notification_channels"):
        if data.get(key) is not None:
            setattr(cfg, key, data[key])
    cfg.updated_at = now

    session.add(cfg)
    try:
        session.commit()
    except IntegrityError:
        # a concurrent writer enabled the same type first
        session.rollback()
        raise ConfigConflict(f"An enabled {alert_type} config already exists")
    session.refresh(cfg)
    return cfg
