"""
tests/test_task_service.py — tasks and subtasks.
"""

from datetime import date

import pytest

from phaseboard.core.exceptions import NotFoundError, ValidationError, WriteConflictError
from phaseboard.services import process_service, project_service, task_service


class TestCreate:
    def test_create_top_level_task(self, project, owner):
        task = task_service.create_task(project, {
            "title": "Order steel",
            "due_date": "2026/11/02",
            "assignee_id": owner.id,
        })
        assert task.parent_task_id is None
        assert task.due_date == date(2026, 11, 2)
        assert task.to_dict()["assignee_name"] == "Olga Owner"

    def test_subtask_inherits_process(self, project):
        process = process_service.create_process(project, {"title": "Structure"})
        parent = task_service.create_task(project, {"title": "Steel", "process_id": process.id})
        child = task_service.create_task(project, {"title": "Beams"}, parent=parent)
        assert child.process_id == process.id
        assert [t.id for t in task_service.list_subtasks(parent)] == [child.id]

    def test_only_one_level_of_nesting(self, project):
        parent = task_service.create_task(project, {"title": "Steel"})
        child = task_service.create_task(project, {"title": "Beams"}, parent=parent)
        with pytest.raises(ValidationError):
            task_service.create_task(project, {"title": "Bolts"}, parent=child)

    def test_parent_from_other_project(self, project, owner):
        other = project_service.create_project({"title": "Other"}, owner_id=owner.id)
        parent = task_service.create_task(other, {"title": "Steel"})
        with pytest.raises(ValidationError):
            task_service.create_task(project, {"title": "Beams"}, parent=parent)

    def test_process_from_other_project(self, project, owner):
        other = project_service.create_project({"title": "Other"}, owner_id=owner.id)
        foreign = process_service.create_process(other, {"title": "Elsewhere"})
        with pytest.raises(ValidationError):
            task_service.create_task(project, {"title": "T", "process_id": foreign.id})

    def test_unknown_assignee(self, project):
        with pytest.raises(NotFoundError):
            task_service.create_task(project, {"title": "T", "assignee_id": 404})

    def test_bad_due_date(self, project):
        with pytest.raises(ValidationError):
            task_service.create_task(project, {"title": "T", "due_date": "next week"})


class TestQueries:
    def test_filter_by_process_and_ungrouped(self, project):
        process = process_service.create_process(project, {"title": "Structure"})
        grouped = task_service.create_task(project, {"title": "A", "process_id": process.id})
        loose = task_service.create_task(project, {"title": "B"})

        assert [t.id for t in task_service.list_tasks(project.id, process_id=process.id)] == [grouped.id]
        assert [t.id for t in task_service.list_tasks(project.id, process_id=None)] == [loose.id]
        assert len(task_service.list_tasks(project.id)) == 2

    def test_top_level_only(self, project):
        parent = task_service.create_task(project, {"title": "Steel"})
        task_service.create_task(project, {"title": "Beams"}, parent=parent)
        assert [t.id for t in task_service.list_tasks(project.id, top_level_only=True)] == [parent.id]


class TestUpdates:
    def test_status_feeds_progress_without_processes(self, project):
        t1 = task_service.create_task(project, {"title": "A"})
        task_service.create_task(project, {"title": "B"})
        task_service.set_task_status(t1, "done")
        assert project.progress == 50

    def test_stale_version(self, project):
        task = task_service.create_task(project, {"title": "A"})
        task_service.update_task(task, {"title": "A2"}, expected_version=1)
        with pytest.raises(WriteConflictError):
            task_service.update_task(task, {"title": "A3"}, expected_version=1)

    def test_delete_cascades_subtasks(self, project):
        parent = task_service.create_task(project, {"title": "Steel"})
        child = task_service.create_task(project, {"title": "Beams"}, parent=parent)
        child_id = child.id
        task_service.delete_task(parent)
        with pytest.raises(NotFoundError):
            task_service.get_task(child_id)

    def test_delete_updates_progress(self, project):
        done = task_service.create_task(project, {"title": "A", "status": "done"})
        task_service.create_task(project, {"title": "B"})
        assert project.progress == 50
        task_service.delete_task(done)
        assert project.progress == 0


class TestTemplates:
    def test_save_snapshots_top_level_tasks_in_order(self, project):
        steel = task_service.create_task(project, {"title": "Steel", "description": "Frame"})
        task_service.create_task(project, {"title": "Beams"}, parent=steel)
        task_service.create_task(project, {"title": "Roof"})

        template = task_service.save_template(project, {"title": "Shell", "description": "Std"})

        items = [(i.title, i.description, i.order_index) for i in template.items]
        assert items == [("Steel", "Frame", 0), ("Roof", None, 1)]

    def test_save_requires_tasks(self, project):
        with pytest.raises(ValidationError):
            task_service.save_template(project, {"title": "Empty"})

    def test_save_requires_title(self, project):
        task_service.create_task(project, {"title": "Steel"})
        with pytest.raises(ValidationError):
            task_service.save_template(project, {"title": "  "})

    def test_apply_into_other_project(self, project, owner):
        task_service.create_task(project, {"title": "Steel", "status": "done"})
        task_service.create_task(project, {"title": "Roof"})
        template = task_service.save_template(project, {"title": "Shell"})
        other = project_service.create_project({"title": "Annex"}, owner_id=owner.id)
        task_service.create_task(other, {"title": "Permit", "status": "done"})

        created = task_service.apply_template(template, other)

        assert [(t.title, t.status, t.process_id, t.parent_task_id) for t in created] == [
            ("Steel", "in-progress", None, None),
            ("Roof", "in-progress", None, None),
        ]
        assert all(t.project_id == other.id for t in created)
        assert other.progress == 33

    def test_delete_keeps_created_tasks(self, project):
        task_service.create_task(project, {"title": "Steel"})
        template = task_service.save_template(project, {"title": "Shell"})
        created = task_service.apply_template(template, project)
        template_id = template.id
        task_service.delete_template(template)
        with pytest.raises(NotFoundError):
            task_service.get_template(template_id)
        assert task_service.get_task(created[0].id).title == "Steel"

    def test_project_delete_removes_templates(self, project):
        task_service.create_task(project, {"title": "Steel"})
        template_id = task_service.save_template(project, {"title": "Shell"}).id
        project_service.delete_project(project)
        with pytest.raises(NotFoundError):
            task_service.get_template(template_id)
