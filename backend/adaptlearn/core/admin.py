# adaptlearn/core/admin.py
from sqladmin import Admin, ModelView
from sqladmin.authentication import AuthenticationBackend
from fastapi import Request
from adaptlearn.core.security import verify_password
from adaptlearn.core.config import settings
from adaptlearn.core.database import db_helper
from adaptlearn.models import Assessment, Course, LessonCompletion, LessonContent, User, UserRole
from adaptlearn.repositories.sql_store import SqlLearningStore


# 1. Настройка авторизации в админке
class AdminAuth(AuthenticationBackend):
    async def login(self, request: Request) -> bool:
        form = await request.form()
        email, password = str(form.get("username", "")), str(form.get("password", ""))

        async with db_helper.session_factory() as session:
            user = await SqlLearningStore(session).get_user_by_email(email)

        # Вход только для администраторов
        if user and user.role == UserRole.ADMIN.value and verify_password(password, user.password_hash):
            request.session.update({"admin_user_id": user.id})
            return True
        return False

    async def logout(self, request: Request) -> bool:
        request.session.clear()
        return True

    async def authenticate(self, request: Request) -> bool:
        return bool(request.session.get("admin_user_id"))


authentication_backend = AdminAuth(secret_key=settings.security.JWT_SECRET_KEY.get_secret_value())


# 2. Представления моделей (Views)

class UserAdmin(ModelView, model=User):
    column_list = [User.id, User.name, User.email, User.role, User.total_xp, User.streak_days, User.created_at]
    column_searchable_list = [User.email, User.name]
    column_sortable_list = [User.id, User.total_xp, User.created_at]
    form_excluded_columns = [User.password_hash, User.courses, User.assessments]
    icon = "fa-solid fa-user"


class CourseAdmin(ModelView, model=Course):
    column_list = [Course.id, Course.user_id, Course.topic, Course.level, Course.completed_modules, Course.progress]
    column_searchable_list = [Course.topic]
    form_excluded_columns = [Course.lessons]
    icon = "fa-solid fa-graduation-cap"


class AssessmentAdmin(ModelView, model=Assessment):
    column_list = [Assessment.id, Assessment.user_id, Assessment.topic, Assessment.score, Assessment.created_at]
    can_create = False
    icon = "fa-solid fa-clipboard-check"


class LessonCompletionAdmin(ModelView, model=LessonCompletion):
    column_list = [
        LessonCompletion.id,
        LessonCompletion.user_id,
        LessonCompletion.course_id,
        LessonCompletion.module_index,
        LessonCompletion.topic_index,
        LessonCompletion.xp_earned,
    ]
    can_create = False
    can_edit = False
    icon = "fa-solid fa-check"


class LessonContentAdmin(ModelView, model=LessonContent):
    column_list = [LessonContent.id, LessonContent.course_id, LessonContent.module_index, LessonContent.title]
    form_columns = [LessonContent.title, LessonContent.content_md]
    icon = "fa-solid fa-book-open"


# 3. Функция инициализации
def setup_admin(app, engine):
    admin = Admin(app, engine, authentication_backend=authentication_backend, title=f"{settings.app_name} Admin")

    admin.add_view(UserAdmin)
    admin.add_view(CourseAdmin)
    admin.add_view(AssessmentAdmin)
    admin.add_view(LessonCompletionAdmin)
    admin.add_view(LessonContentAdmin)
