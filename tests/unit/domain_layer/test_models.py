"""
Unit Tests for Domain Models
"""

import pytest
from pydantic import ValidationError

from telehealth_cache.domain.models import (
    DetectDiseaseNameInput,
    DoctorListFilters,
    FinalEvaluationOutput,
    ProfileUpdate,
    UserProfile,
)


@pytest.mark.unit
class TestProfileModels:
    def test_unknown_profile_columns_kept(self):
        profile = UserProfile.model_validate({"id": "u1", "email": "a@b.co", "avatar_url": "x"})

        assert profile.model_dump()["avatar_url"] == "x"

    def test_profile_update_changes_only_set_fields(self):
        update = ProfileUpdate(display_name="Pat", verified=None)

        assert update.changes() == {"display_name": "Pat", "verified": None}
        assert ProfileUpdate().changes() == {}


@pytest.mark.unit
class TestDoctorListFilters:
    def test_empty(self):
        assert DoctorListFilters().is_empty() is True
        assert DoctorListFilters(verified=False).is_empty() is False

    def test_unknown_filter_rejected(self):
        with pytest.raises(ValidationError):
            DoctorListFilters(city="Pune")

    def test_negative_fee_rejected(self):
        with pytest.raises(ValidationError):
            DoctorListFilters(min_fee=-1)


@pytest.mark.unit
class TestAIPayloads:
    def test_camel_case_and_field_names_accepted(self):
        by_alias = DetectDiseaseNameInput.model_validate({"photoDataUri": "data:image/png;base64,AA=="})
        by_name = DetectDiseaseNameInput(photo_data_uri="data:image/png;base64,AA==")

        assert by_alias == by_name

    def test_final_evaluation_defaults(self):
        output = FinalEvaluationOutput(conditionName="Eczema", condition="Dry skin")

        assert output.dos == []
        assert output.model_dump(by_alias=True)["otherConsiderations"] == ""
