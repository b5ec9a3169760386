import threading

import pytest

from soundright.errors import ConflictError, NotFoundError
from soundright.models.models import Equipment, Project, ProjectEquipment
from soundright.services.allocation import (
    allocate_equipment,
    equipment_in_use,
    release_project_equipment,
    return_equipment,
)


def _is_available(session_factory, equipment_id) -> bool:
    with session_factory() as db:
        return db.get(Equipment, equipment_id).is_available


def _open_rows(session_factory, equipment_id) -> int:
    with session_factory() as db:
        return (
            db.query(ProjectEquipment)
            .filter(ProjectEquipment.equipment_id == equipment_id, ProjectEquipment.returned_date.is_(None))
            .count()
        )


def test_allocate_then_return_flips_availability(session_factory, make_project, make_equipment):
    project_id, equipment_id = make_project(), make_equipment()

    with session_factory() as db:
        allocation = allocate_equipment(db, db.get(Project, project_id), equipment_id, quantity=2, notes="Main PA")
        db.commit()
        assert allocation.returned_date is None
    assert _is_available(session_factory, equipment_id) is False

    with session_factory() as db:
        allocation = return_equipment(db, db.get(Project, project_id), equipment_id)
        db.commit()
        assert allocation.returned_date is not None
    assert _is_available(session_factory, equipment_id) is True
    assert _open_rows(session_factory, equipment_id) == 0


def test_reallocation_after_return_inserts_new_row(session_factory, make_project, make_equipment):
    project_id, equipment_id = make_project(), make_equipment()
    for _ in range(2):
        with session_factory() as db:
            project = db.get(Project, project_id)
            allocate_equipment(db, project, equipment_id)
            db.commit()
        with session_factory() as db:
            return_equipment(db, db.get(Project, project_id), equipment_id)
            db.commit()

    with session_factory() as db:
        assert db.query(ProjectEquipment).filter(ProjectEquipment.equipment_id == equipment_id).count() == 2


def test_unavailable_equipment_is_rejected(session_factory, make_project, make_equipment):
    first, second = make_project("Gig A"), make_project("Gig B")
    equipment_id = make_equipment()
    with session_factory() as db:
        allocate_equipment(db, db.get(Project, first), equipment_id)
        db.commit()

    with session_factory() as db:
        with pytest.raises(ConflictError, match="not available"):
            allocate_equipment(db, db.get(Project, second), equipment_id)
        db.rollback()
    assert _open_rows(session_factory, equipment_id) == 1


def test_duplicate_allocation_to_same_project(session_factory, make_project, make_equipment):
    project_id, equipment_id = make_project(), make_equipment()
    with session_factory() as db:
        allocate_equipment(db, db.get(Project, project_id), equipment_id)
        db.commit()
    with session_factory() as db:
        with pytest.raises(ConflictError, match="already allocated to this project"):
            allocate_equipment(db, db.get(Project, project_id), equipment_id)


@pytest.mark.parametrize("status", ["completed", "cancelled"])
def test_closed_projects_cannot_allocate(session_factory, make_project, make_equipment, status):
    project_id, equipment_id = make_project(status=status), make_equipment()
    with session_factory() as db:
        with pytest.raises(ConflictError, match="completed or cancelled"):
            allocate_equipment(db, db.get(Project, project_id), equipment_id)
    assert _is_available(session_factory, equipment_id) is True


def test_return_without_open_allocation(session_factory, make_project, make_equipment):
    project_id, equipment_id = make_project(), make_equipment()
    with session_factory() as db:
        with pytest.raises(NotFoundError, match="not found or already returned"):
            return_equipment(db, db.get(Project, project_id), equipment_id)


def test_release_and_in_use(session_factory, make_project, make_equipment):
    project_id = make_project()
    units = [make_equipment(name=f"Unit {i}") for i in range(3)]
    with session_factory() as db:
        project = db.get(Project, project_id)
        for unit in units:
            allocate_equipment(db, project, unit)
        db.commit()

    with session_factory() as db:
        assert equipment_in_use(db, units[0]) is True
        released = release_project_equipment(db, db.get(Project, project_id))
        db.commit()
    assert released == 3
    assert all(_is_available(session_factory, unit) for unit in units)
    with session_factory() as db:
        assert equipment_in_use(db, units[0]) is False


def test_concurrent_allocations_only_one_wins(session_factory, make_project, make_equipment):
    projects = [make_project("Gig A"), make_project("Gig B")]
    equipment_id = make_equipment()
    barrier = threading.Barrier(len(projects))
    outcomes = []
    lock = threading.Lock()

    def worker(project_id):
        barrier.wait()
        db = session_factory()
        try:
            allocate_equipment(db, db.get(Project, project_id), equipment_id)
            db.commit()
            result = "ok"
        except ConflictError:
            db.rollback()
            result = "conflict"
        finally:
            db.close()
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=worker, args=(pid,)) for pid in projects]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(outcomes) == ["conflict", "ok"]
    assert _open_rows(session_factory, equipment_id) == 1
    assert _is_available(session_factory, equipment_id) is False
