"""Unit tests for position field validation and the position service."""

import pytest

from civic_admin.core.exceptions import ForbiddenError, NotFoundError, ValidationError
from civic_admin.core.repository import POSITIONS
from civic_admin.services import positions as position_service
from civic_admin.services.positions import APPOINTED_DEFAULTS, validate_position_fields

ELECTED_PRIOR = {
    "name": "Mayor",
    "grouping_type_id": 3,
    "is_elected": True,
    "ballot_grouping_type_id": 3,
    "is_non_partisan": True,
    "seat_count": 1,
    "requires_declaration": True,
    "requires_petition": True,
    "petition_signatures": 25,
    "election_method": "majority",
}


# ============================================
# FIELD VALIDATION
# ============================================


class TestValidatePositionFields:
    def test_create_defaults_to_appointed(self):
        fields = validate_position_fields({"name": "Clerk", "election_method": "ranked"})

        assert fields["is_elected"] is False
        for key, value in APPOINTED_DEFAULTS.items():
            assert fields[key] == value
        assert fields["seat_count"] == 1

    def test_appointed_discards_election_settings(self):
        fields = validate_position_fields(
            {
                "name": "Clerk",
                "is_elected": False,
                "ballot_grouping_type_id": 9,
                "is_non_partisan": True,
                "requires_declaration": True,
                "requires_petition": True,
                "petition_signatures": 40,
                "election_method": "plurality",
            }
        )
        for key, value in APPOINTED_DEFAULTS.items():
            assert fields[key] == value

    def test_elected_ballot_grouping_falls_back_to_grouping_type(self):
        fields = validate_position_fields(
            {"name": "Mayor", "is_elected": True, "grouping_type_id": 3}
        )
        assert fields["ballot_grouping_type_id"] == 3
        assert fields["is_non_partisan"] is False
        assert fields["requires_declaration"] is False
        assert fields["requires_petition"] is False
        assert fields["election_method"] is None

    def test_elected_keeps_explicit_ballot_grouping(self):
        fields = validate_position_fields(
            {"name": "Mayor", "is_elected": True, "grouping_type_id": 3, "ballot_grouping_type_id": 5}
        )
        assert fields["ballot_grouping_type_id"] == 5

    def test_petition_signatures_need_a_petition(self):
        fields = validate_position_fields(
            {"name": "Mayor", "is_elected": True, "petition_signatures": 30}
        )
        assert fields["petition_signatures"] is None

        fields = validate_position_fields(
            {"name": "Mayor", "is_elected": True, "requires_petition": True, "petition_signatures": 30}
        )
        assert fields["petition_signatures"] == 30

    def test_invalid_method_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_position_fields({"name": "Mayor", "election_method": "approval"})
        assert exc_info.value.errors == {"election_method": "approval"}

    def test_invalid_method_rejected_even_for_appointed(self):
        with pytest.raises(ValidationError):
            validate_position_fields(
                {"name": "Clerk", "is_elected": False, "election_method": "borda"}
            )

    def test_empty_method_is_null(self):
        fields = validate_position_fields(
            {"name": "Mayor", "is_elected": True, "election_method": ""}
        )
        assert fields["election_method"] is None

    def test_name_required_on_create(self):
        with pytest.raises(ValidationError):
            validate_position_fields({"is_elected": True})
        with pytest.raises(ValidationError):
            validate_position_fields({"name": "   "})

    @pytest.mark.parametrize("seat_count", [0, -2])
    def test_seat_count_must_be_positive(self, seat_count):
        with pytest.raises(ValidationError):
            validate_position_fields({"name": "Council", "seat_count": seat_count})

    def test_unknown_field_rejected(self):
        with pytest.raises(ValidationError):
            validate_position_fields({"name": "Mayor", "salary": 100})

    def test_update_keeps_persisted_is_elected(self):
        fields = validate_position_fields({"description": "Runs the city"}, prior=ELECTED_PRIOR)

        assert fields["is_elected"] is True
        assert fields["election_method"] == "majority"
        assert fields["petition_signatures"] == 25
        assert fields["description"] == "Runs the city"

    def test_update_explicit_null_clears_method(self):
        fields = validate_position_fields({"election_method": None}, prior=ELECTED_PRIOR)
        assert fields["is_elected"] is True
        assert fields["election_method"] is None

    def test_update_to_appointed_clears_everything(self):
        fields = validate_position_fields({"is_elected": False}, prior=ELECTED_PRIOR)
        for key, value in APPOINTED_DEFAULTS.items():
            assert fields[key] == value
        assert fields["grouping_type_id"] == 3

    def test_update_keeps_persisted_ballot_grouping(self):
        prior = {**ELECTED_PRIOR, "ballot_grouping_type_id": 7}
        fields = validate_position_fields({"description": "Runs the city"}, prior=prior)
        assert fields["ballot_grouping_type_id"] == 7

    def test_update_ballot_fallback_uses_persisted_grouping_type(self):
        prior = {**ELECTED_PRIOR, "ballot_grouping_type_id": None}
        fields = validate_position_fields({"is_elected": True}, prior=prior)
        assert fields["ballot_grouping_type_id"] == 3

    def test_update_null_ballot_grouping_falls_back(self):
        prior = {**ELECTED_PRIOR, "ballot_grouping_type_id": 7}
        fields = validate_position_fields({"ballot_grouping_type_id": None}, prior=prior)
        assert fields["ballot_grouping_type_id"] == 3

    def test_appointed_ignores_negative_signatures(self):
        fields = validate_position_fields(
            {"is_elected": False, "petition_signatures": -5}, prior=ELECTED_PRIOR
        )
        for key, value in APPOINTED_DEFAULTS.items():
            assert fields[key] == value

    def test_negative_signatures_rejected_when_kept(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_position_fields({"petition_signatures": -5}, prior=ELECTED_PRIOR)
        assert exc_info.value.errors == {"petition_signatures": -5}

    def test_update_name_cannot_be_blanked(self):
        with pytest.raises(ValidationError):
            validate_position_fields({"name": ""}, prior=ELECTED_PRIOR)


# ============================================
# POSITION OPERATIONS
# ============================================


class TestPositionService:
    async def test_create_position(self, repo, program, admin_user):
        position = await position_service.create_position(
            repo,
            admin_user["id"],
            program["id"],
            {"name": "Governor", "is_elected": True, "grouping_type_id": 2, "election_method": "ranked"},
        )

        assert position["program_id"] == program["id"]
        assert position["status"] == "active"
        assert position["ballot_grouping_type_id"] == 2
        assert position["election_method"] == "ranked"

    async def test_create_requires_admin(self, repo, program, member_user):
        with pytest.raises(ForbiddenError):
            await position_service.create_position(
                repo, member_user["id"], program["id"], {"name": "Governor"}
            )

    async def test_create_unknown_program(self, repo, admin_user):
        with pytest.raises(NotFoundError):
            await position_service.create_position(
                repo, admin_user["id"], "missing", {"name": "Governor"}
            )

    async def test_invalid_method_writes_nothing(self, repo, program, admin_user):
        with pytest.raises(ValidationError):
            await position_service.create_position(
                repo, admin_user["id"], program["id"], {"name": "Governor", "election_method": "x"}
            )
        assert await repo.count(POSITIONS) == 0

    async def test_update_omitting_is_elected_keeps_it(self, repo, program, admin_user, elected_position):
        updated = await position_service.update_position(
            repo, admin_user["id"], elected_position["id"], {"seat_count": 3}
        )
        assert updated["is_elected"] is True
        assert updated["seat_count"] == 3
        assert updated["election_method"] == "plurality"

    async def test_update_missing_position(self, repo, program, admin_user):
        with pytest.raises(NotFoundError):
            await position_service.update_position(repo, admin_user["id"], 999, {"name": "X"})

    async def test_list_positions_for_members(self, repo, program, member_user, outsider_user, elected_position):
        positions = await position_service.list_positions(repo, member_user["id"], program["id"])
        assert [p["id"] for p in positions] == [elected_position["id"]]

        with pytest.raises(ForbiddenError):
            await position_service.list_positions(repo, outsider_user["id"], program["id"])

    async def test_retire_position(self, repo, program, admin_user, elected_position):
        retired = await position_service.retire_position(
            repo, admin_user["id"], elected_position["id"]
        )
        assert retired["status"] == "retired"
        assert (await repo.find_by_id(POSITIONS, elected_position["id"]))["status"] == "retired"
