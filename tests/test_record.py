"""Tests for EventRecord (shiftspec.record)."""

import pytest

from shiftspec.record import EventRecord


class TestEventRecord:

    def test_mapping_access(self):
        sr = EventRecord({"Elep_reco": 1.5}, isCC=True)
        assert sr["Elep_reco"] == 1.5
        assert sr.isCC is True
        assert set(sr) == {"Elep_reco", "isCC"}
        assert len(sr) == 2

    def test_values_reassignable(self):
        sr = EventRecord(Elep_reco=1.5)
        sr["Elep_reco"] = 2.0
        assert sr.Elep_reco == 2.0

    def test_schema_fixed(self):
        sr = EventRecord(Elep_reco=1.5)
        with pytest.raises(KeyError, match="schema is fixed"):
            sr["theta_reco"] = 0.1
        with pytest.raises(TypeError):
            del sr["Elep_reco"]

    def test_missing_attribute(self):
        sr = EventRecord(Elep_reco=1.5)
        with pytest.raises(AttributeError):
            sr.theta_reco
        with pytest.raises(AttributeError):
            sr._private

    def test_copy_is_independent(self):
        sr = EventRecord(Elep_reco=1.5)
        other = sr.copy()
        other["Elep_reco"] = 9.0
        assert sr["Elep_reco"] == 1.5
        assert sr.to_dict() == {"Elep_reco": 1.5}
