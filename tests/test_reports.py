import pytest
from sqlalchemy import func, select

from errors import Forbidden, ValidationError
from model import Report
from schemas import Identity

pytestmark = pytest.mark.anyio


def count_reports(session_factory):
    with session_factory() as db:
        return db.execute(select(func.count()).select_from(Report)).scalar_one()


@pytest.fixture
async def ann(user_registry):
    _, user = await user_registry.register("Ann", "ann@x.com", "secret1")
    return Identity(id=user.id, email=user.email, role=user.role)


async def test_register_then_submit_scenario(user_registry, report_registry, session_factory, tokens):
    token, user = await user_registry.register("Ann", "ann@x.com", "secret1")
    assert user.model_dump() == {"id": 1, "name": "Ann", "email": "ann@x.com", "role": "citizen"}

    owner = tokens.verify(token)
    report_id = await report_registry.submit(owner, "pothole", description="deep hole")

    assert report_id == 1
    with session_factory() as db:
        report = db.get(Report, report_id)
        assert report.status == "submitted"
        assert report.user_id == 1
        assert report.category == "pothole"
        assert report.description == "deep hole"
        assert report.photo is None


async def test_submit_stores_all_fields(report_registry, session_factory, ann):
    report_id = await report_registry.submit(
        ann,
        "streetlight",
        location="Main St",
        latitude=51.5,
        longitude=-0.12,
        description="flickering",
        photo_ref="1700000000000-42.jpg",
    )

    with session_factory() as db:
        report = db.get(Report, report_id)
        assert report.user_id == ann.id
        assert report.location == "Main St"
        assert report.latitude == 51.5
        assert report.longitude == -0.12
        assert report.photo == "1700000000000-42.jpg"
        assert report.status == "submitted"
        assert report.assigned_worker_id is None
        assert report.admin_notes is None
        assert report.created_at == report.updated_at


async def test_submit_ids_are_distinct(report_registry, ann):
    first = await report_registry.submit(ann, "pothole")
    second = await report_registry.submit(ann, "graffiti")
    assert first != second


@pytest.mark.parametrize("category", [None, "", "   "])
async def test_submit_requires_category(report_registry, session_factory, ann, category):
    with pytest.raises(ValidationError):
        await report_registry.submit(ann, category)
    assert count_reports(session_factory) == 0


@pytest.mark.parametrize("latitude, longitude", [(91, 0), (-91, 0), (0, 181), (0, -181)])
async def test_submit_rejects_invalid_coordinates(report_registry, ann, latitude, longitude):
    with pytest.raises(ValidationError):
        await report_registry.submit(ann, "pothole", latitude=latitude, longitude=longitude)


async def test_submit_requires_an_identity(report_registry):
    with pytest.raises(Forbidden):
        await report_registry.submit(None, "pothole")


async def test_submit_for_unknown_owner_is_refused(report_registry, session_factory):
    ghost = Identity(id=404, email="ghost@x.com", role="citizen")

    with pytest.raises(Forbidden):
        await report_registry.submit(ghost, "pothole")
    assert count_reports(session_factory) == 0
