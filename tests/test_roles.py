from fpms.core.roles import (
    infer_role_from_email,
    is_dean_role,
    is_hod_role,
    normalize_role_key,
    normalize_role_label,
    refine_specific_role,
    resolve_actor_role,
    unique_role_labels,
)


class TestNormalizeRoleKey:
    def test_principal_family_collapses(self):
        assert normalize_role_key("Principal") == normalize_role_key("principle") == normalize_role_key("admin")
        assert normalize_role_key("Principal") == "principle"

    def test_vice_principal_variants(self):
        assert normalize_role_key("Vice Principal") == "viceprinciple"
        assert normalize_role_key("vice-principle") == "viceprinciple"

    def test_committee_misspelling(self):
        assert normalize_role_key("Commitee") == normalize_role_key("committee") == "committee"

    def test_deans_stay_distinct(self):
        science = normalize_role_key("Dean of Science")
        engineering = normalize_role_key("Dean of Engineering")
        assert science != engineering
        assert engineering == "deanofengineering"
        assert is_dean_role("Dean of Science")
        assert is_dean_role("  dean of engineering")

    def test_total_on_odd_input(self):
        assert normalize_role_key(None) == ""
        assert normalize_role_key("") == ""
        assert normalize_role_key("  H.O.D  ") == "hod"


class TestRoleHelpers:
    def test_is_hod_role(self):
        assert is_hod_role("HOD")
        assert is_hod_role("hod-cse")
        assert not is_hod_role("faculty")

    def test_normalize_role_label(self):
        assert normalize_role_label(" Principal ") == "principle"
        assert normalize_role_label("Vice-Principal") == "vice principle"
        assert normalize_role_label("Faculty") == "faculty"

    def test_unique_role_labels_keeps_order(self):
        assert unique_role_labels([" hod", "dean", "", None, "hod"]) == ["hod", "dean"]
        assert unique_role_labels("hod") == []
        assert unique_role_labels(None) == []

    def test_infer_role_from_email(self):
        assert infer_role_from_email("superadmin@x.edu") == "superadmin"
        assert infer_role_from_email("exam.committee@x.edu") == "committee"
        assert infer_role_from_email("principal@x.edu") == "principle"
        assert infer_role_from_email("dean.science@x.edu") == "dean"
        assert infer_role_from_email("hod.cse@x.edu") == "hod"
        assert infer_role_from_email("someone@x.edu") == "faculty"


class TestActorRolePrecedence:
    def test_first_non_blank_source_wins(self):
        role, source = resolve_actor_role([
            ("claim", None),
            ("committee_claim", ""),
            ("profile", "hod"),
            ("email", "faculty"),
        ])
        assert (role, source) == ("hod", "profile")

    def test_claim_beats_profile(self):
        role, source = resolve_actor_role([("claim", "dean"), ("profile", "hod")])
        assert (role, source) == ("dean", "claim")

    def test_nothing_resolved(self):
        assert resolve_actor_role([("claim", None), ("profile", "  ")]) == ("", "none")

    def test_generic_dean_refined_from_profile(self):
        assert refine_specific_role("dean", "Dean of Science") == "Dean of Science"
        assert refine_specific_role("principal", "Principal") == "Principal"
        # unrelated profile roles never replace the resolved role
        assert refine_specific_role("principle", "hod") == "principle"
        assert refine_specific_role("faculty", "Dean of Science") == "faculty"
