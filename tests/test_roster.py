import pytest

from app.errors import AuthorizationError, NotFoundError, ValidationError
from app.models.group import Group, GroupCreate
from app.models.user import User
from app.services.roster import UNUSABLE_PASSWORD, RosterService


@pytest.fixture
def roster(mongo, dispatcher):
    return RosterService(dispatcher)


async def make_user(name: str, email: str, placeholder: bool = False) -> User:
    user = User(name=name, email=email, hashed_password=UNUSABLE_PASSWORD, is_placeholder=placeholder)
    await user.insert()
    return user


@pytest.fixture
async def teacher(mongo):
    return await make_user("Ms. Frizzle", "frizzle@example.com")


@pytest.fixture
async def group(roster, teacher):
    return await roster.create_group(GroupCreate(name="  Biology  ", description="Period 2"), str(teacher.id))


async def reload(group: Group) -> Group:
    return await Group.get(group.id)


async def test_owner_becomes_first_admin(group, teacher):
    assert group.name == "Biology"
    assert group.admins == [str(teacher.id)]
    assert group.students == []


async def test_list_groups_covers_admins_and_students(roster, group, teacher):
    student = await roster.add_student(str(group.id), "Arnold")
    await roster.create_group(GroupCreate(name="Chemistry"), "someone-else")

    assert [g.name for g in await roster.list_groups(str(teacher.id))] == ["Biology"]
    assert [g.name for g in await roster.list_groups(str(student.id))] == ["Biology"]


async def test_unknown_and_malformed_group_ids(roster, mongo):
    with pytest.raises(NotFoundError, match="Invalid Group ID"):
        await roster.get_group("not-an-id")
    with pytest.raises(NotFoundError, match="Group not found"):
        await roster.get_group("65f1c0ffee0000000000abcd")


async def test_admin_and_member_checks(roster, group, teacher):
    student = await roster.add_student(str(group.id), "Arnold")

    assert (await roster.require_admin(str(group.id), str(teacher.id))).id == group.id
    assert (await roster.require_member(str(group.id), str(student.id))).id == group.id
    with pytest.raises(AuthorizationError):
        await roster.require_admin(str(group.id), str(student.id))
    with pytest.raises(AuthorizationError):
        await roster.require_member(str(group.id), "stranger")


async def test_add_student_creates_placeholder_and_notifies(roster, group, notifications):
    student = await roster.add_student(str(group.id), "  Wanda  ")

    assert student.name == "Wanda"
    assert student.is_placeholder
    assert student.email.endswith("@placeholder.com")
    assert (await reload(group)).students == [str(student.id)]
    assert notifications == [(str(group.id), "attendance_updated")]


async def test_blank_student_name_is_rejected(roster, group, notifications):
    with pytest.raises(ValidationError, match="Name is required"):
        await roster.add_student(str(group.id), "   ")
    assert (await reload(group)).students == []
    assert notifications == []


async def test_remove_student_notifies(roster, group, notifications):
    student = await roster.add_student(str(group.id), "Carlos")

    await roster.remove_student(str(group.id), str(student.id))

    assert (await reload(group)).students == []
    assert len(notifications) == 2


async def test_add_admin_by_email(roster, group, teacher, notifications):
    colleague = await make_user("Mr. Ruhle", "ruhle@example.com")

    added = await roster.add_admin(str(group.id), "ruhle@example.com")

    assert added.id == colleague.id
    assert (await reload(group)).admins == [str(teacher.id), str(colleague.id)]
    assert notifications == [(str(group.id), "attendance_updated")]


async def test_add_admin_rejects_unknown_and_placeholder_users(roster, group, notifications):
    student = await roster.add_student(str(group.id), "Tim")
    notifications.clear()

    with pytest.raises(NotFoundError):
        await roster.add_admin(str(group.id), "nobody@example.com")
    with pytest.raises(NotFoundError):
        await roster.add_admin(str(group.id), student.email)
    assert notifications == []


async def test_last_admin_cannot_be_removed(roster, group, teacher):
    with pytest.raises(ValidationError, match="last admin"):
        await roster.remove_admin(str(group.id), str(teacher.id))
    with pytest.raises(NotFoundError):
        await roster.remove_admin(str(group.id), "not-an-admin")

    colleague = await make_user("Mr. Ruhle", "ruhle@example.com")
    await roster.add_admin(str(group.id), colleague.email)
    await roster.remove_admin(str(group.id), str(teacher.id))

    assert (await reload(group)).admins == [str(colleague.id)]


async def test_get_users_skips_malformed_ids(roster, teacher):
    users = await roster.get_users([str(teacher.id), "garbage", ""])
    assert [u.name for u in users] == ["Ms. Frizzle"]
