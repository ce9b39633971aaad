"""Groups (classes): creation, roster management and the summary with attendance percentages."""
from fastapi import APIRouter

from app.api.deps import Cache, CurrentUser, Roster, Store
from app.models.group import AddAdminRequest, AddStudentRequest, Group, GroupCreate
from app.models.user import User, user_to_out
from app.services.cache import group_key
from app.services.stats import EMPTY_STATS, compute_group_stats

router = APIRouter()


def serialize_group(group: Group, admins: list[User] | None = None) -> dict:
    admin_map = {str(a.id): a for a in admins or []}
    return {
        "id": str(group.id),
        "name": group.name,
        "description": group.description,
        "admins": [
            {"id": a_id, "name": admin_map[a_id].name} if a_id in admin_map else {"id": a_id}
            for a_id in group.admins
        ],
        "students": list(group.students),
        "created_at": group.created_at.isoformat(),
        "updated_at": group.updated_at.isoformat(),
    }


@router.post("/", status_code=201)
async def create_group(data: GroupCreate, user: CurrentUser, roster: Roster):
    group = await roster.create_group(data, str(user.id))
    return serialize_group(group, [user])


@router.get("/")
async def list_groups(user: CurrentUser, roster: Roster):
    groups = await roster.list_groups(str(user.id))
    admin_ids = {a for g in groups for a in g.admins}
    admins = await roster.get_users(admin_ids)
    return [serialize_group(g, admins) for g in groups]


@router.get("/{group_id}")
async def get_group(group_id: str, user: CurrentUser, roster: Roster, store: Store, cache: Cache):
    """Group metadata plus its students, each annotated with an attendance percentage."""
    group = await roster.require_member(group_id, str(user.id))

    async def load() -> dict:
        sheets = await store.find_all_sheets(group_id)
        stats = compute_group_stats(sheets)
        admins = await roster.get_users(group.admins)
        students = await roster.get_users(group.students)
        students.sort(key=lambda s: s.name.lower())
        return {
            "group": serialize_group(group, admins),
            "students": [
                {
                    **user_to_out(s).model_dump(exclude={"percentage"}),
                    "percentage": stats.get(str(s.id), EMPTY_STATS).percentage,
                }
                for s in students
            ],
        }

    return await cache.get_or_load(group_key(group_id), load)


@router.post("/{group_id}/add")
async def add_student(group_id: str, data: AddStudentRequest, user: CurrentUser, roster: Roster):
    await roster.require_admin(group_id, str(user.id))
    student = await roster.add_student(group_id, data.name)
    return {"message": "Student added", "student": user_to_out(student)}


@router.delete("/{group_id}/students/{student_id}")
async def remove_student(group_id: str, student_id: str, user: CurrentUser, roster: Roster):
    await roster.require_admin(group_id, str(user.id))
    await roster.remove_student(group_id, student_id)
    return {"message": "Student removed successfully"}


@router.post("/{group_id}/admins")
async def add_admin(group_id: str, data: AddAdminRequest, user: CurrentUser, roster: Roster):
    await roster.require_admin(group_id, str(user.id))
    admin = await roster.add_admin(group_id, data.email)
    return {"message": "Admin added", "admin": user_to_out(admin)}


@router.delete("/{group_id}/admins/{user_id}")
async def remove_admin(group_id: str, user_id: str, user: CurrentUser, roster: Roster):
    await roster.require_admin(group_id, str(user.id))
    await roster.remove_admin(group_id, user_id)
    return {"message": "Admin removed successfully"}
