"""
tests/test_settings.py — Settings Store & Seeder
=================================================
"""

from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from greenguardian.database.models import Setting
from greenguardian.database.seed import DEFAULT_SETTINGS, seed_default_settings
from greenguardian.services import settings_service


class TestSeed:
    def test_all_defaults_present(self, db_engine):
        with Session(db_engine) as session:
            count = session.scalar(select(func.count()).select_from(Setting))
        assert count == len(DEFAULT_SETTINGS)

    def test_reseed_keeps_edited_values(self, db_engine):
        settings_service.upsert_setting(
            db_engine, key="rewards.volunteer_event_points", value=70,
        )
        seed_default_settings(db_engine)
        with Session(db_engine) as session:
            assert settings_service.get_int(
                session, "rewards.volunteer_event_points", 0,
            ) == 70


class TestReads:
    def test_missing_key_returns_default(self, db_session):
        assert settings_service.get_setting_value(db_session, "nope", "dflt") == "dflt"

    def test_get_int_falls_back_on_garbage(self, db_engine):
        settings_service.upsert_setting(db_engine, key="presence.online_seconds", value="soon")
        with Session(db_engine) as session:
            assert settings_service.get_int(session, "presence.online_seconds", 60) == 60


class TestUpsert:
    def test_update_keeps_category(self, db_engine):
        settings_service.upsert_setting(db_engine, key="presence.away_seconds", value=600)
        row = next(
            r for r in settings_service.get_all_settings(db_engine)
            if r.key == "presence.away_seconds"
        )
        assert row.category == "presence"
        assert row.value_json == "600"

    def test_new_key_defaults_to_general(self, db_engine):
        settings_service.upsert_setting(db_engine, key="feature.flag", value=True)
        row = next(
            r for r in settings_service.get_all_settings(db_engine) if r.key == "feature.flag"
        )
        assert row.category == "general"
