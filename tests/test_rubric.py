import json

import pytest

from fpms.core.errors import Forbidden, NotFound
from fpms.db import seed as seed_module
from fpms.db.seed import seed_rubric
from fpms.models.rubric import RubricTask
from fpms.services import routing, rubric_service

FORMS = [
    {
        "id": "form-faculty",
        "title": "Faculty Appraisal",
        "applicableRoles": ["Faculty", "HOD"],
        "criteria": [
            {
                "id": "crit-research",
                "name": "Research",
                "order": 2,
                "totalMarks": 20,
                "modules": [
                    {
                        "id": "mod-pubs",
                        "name": "Publications",
                        "order": 1,
                        "tasks": [
                            {"id": "task-conf", "title": "Conference paper", "marks": 4, "order": 2},
                            {"id": "task-journal", "title": "Journal paper", "marks": 8, "order": 1},
                        ],
                    }
                ],
            },
            {"id": "crit-teaching", "name": "Teaching", "order": 1, "totalMarks": 30},
        ],
    },
    {"id": "form-principal", "title": "Principal Appraisal", "applicableRoles": ["Principal"]},
]


@pytest.fixture
def rubric(db_session):
    seed_rubric(db_session, FORMS)
    return db_session


class TestApplicableForms:
    def test_forms_filtered_by_role(self, rubric):
        forms = rubric_service.list_applicable_forms(rubric, role_label="faculty")
        assert [f["id"] for f in forms] == ["form-faculty"]
        assert [c["id"] for c in forms[0]["criteria"]] == ["crit-teaching", "crit-research"]

    def test_role_synonyms(self, rubric):
        forms = rubric_service.list_applicable_forms(rubric, role_label="admin")
        assert [f["id"] for f in forms] == ["form-principal"]

    def test_blank_role(self, rubric):
        assert rubric_service.list_applicable_forms(rubric, role_label="") == []


class TestCriteriaTree:
    def test_tasks_grouped_and_ordered(self, rubric):
        tree = rubric_service.get_criteria_tree(
            rubric, form_id="form-faculty", criteria_id="crit-research", role_label="hod"
        )
        assert tree["criteria"]["name"] == "Research"
        assert [m["id"] for m in tree["modules"]] == ["mod-pubs"]
        assert [t["id"] for t in tree["modules"][0]["tasks"]] == ["task-journal", "task-conf"]

    def test_unknown_form(self, rubric):
        with pytest.raises(NotFound):
            rubric_service.get_criteria_tree(rubric, form_id="nope", criteria_id="crit-research", role_label="faculty")

    def test_unknown_criteria(self, rubric):
        with pytest.raises(NotFound):
            rubric_service.get_criteria_tree(rubric, form_id="form-faculty", criteria_id="nope", role_label="faculty")

    def test_role_not_applicable(self, rubric):
        with pytest.raises(Forbidden):
            rubric_service.get_criteria_tree(
                rubric, form_id="form-principal", criteria_id="crit-research", role_label="faculty"
            )


class TestTaskMarks:
    def test_known_task(self, rubric):
        assert rubric_service.task_max_marks(
            rubric, form_id="form-faculty", criteria_id="crit-research", task_id="task-journal"
        ) == 8.0

    def test_task_under_other_criteria(self, rubric):
        assert rubric_service.task_max_marks(
            rubric, form_id="form-faculty", criteria_id="crit-teaching", task_id="task-journal"
        ) is None


class TestBulkInsert:
    def test_chunks(self, db_session):
        seed_rubric(db_session, [{"id": "f", "applicableRoles": [], "criteria": [{"id": "c"}]}])
        tasks = (
            RubricTask(id=f"t{i}", form_id="f", criteria_id="c", title=f"Task {i}", marks=1)
            for i in range(7)
        )
        written = rubric_service.bulk_insert_chunks(db_session, tasks, batch_size=3)
        assert written == 7
        assert db_session.query(RubricTask).count() == 7


class TestSeedCommand:
    def test_loads_json_file(self, db_session, tmp_path, monkeypatch):
        payload = {
            "roles": [{"name": name, "level": level} for level, name in enumerate(["faculty", "hod"], start=1)],
            "rules": [{"role": "faculty", "submitToRoles": ["hod"]}],
            "forms": FORMS,
        }
        path = tmp_path / "seed.json"
        path.write_text(json.dumps(payload), encoding="utf-8")

        monkeypatch.setattr(seed_module, "init_db", lambda: None)
        monkeypatch.setattr(seed_module, "SessionLocal", lambda: db_session)

        seed_module.main([str(path), "--batch-size", "2"])

        assert routing.load_workflow_config(db_session).roles == ["faculty", "hod"]
        assert routing.load_routing_table(db_session).resolve("faculty", "submission") == ["hod"]
        assert db_session.query(RubricTask).count() == 2

    def test_defaults_without_file(self, db_session, monkeypatch):
        monkeypatch.setattr(seed_module, "init_db", lambda: None)
        monkeypatch.setattr(seed_module, "SessionLocal", lambda: db_session)

        seed_module.main([])

        names = set(routing.load_workflow_config(db_session).roles)
        assert names == {name for name, _ in seed_module.DEFAULT_ROLES}
