from ._db import transaction_scope
from .book_workflows import (
    book_workflow_exists,
    create_book,
    create_book_workflow,
    create_book_workflow_category,
    is_book_slug_taken,
    list_book_workflow_categories,
    list_book_workflow_departments,
    list_book_workflows,
    list_books,
)
from .courses import (
    create_course,
    create_lesson,
    create_module,
    is_course_slug_available,
    is_lesson_slug_available,
    is_module_name_available,
    list_published_courses,
)
from .import_logs import create_import_log, get_import_log, list_import_logs
from .invitations import (
    create_invitation,
    delete_invitation,
    delete_invitations_for_email,
    list_invitations,
    mark_invitation_accepted,
)
from .organisations import (
    create_organisation,
    delete_organisation,
    list_organisations,
)
from .sessions import (
    create_session,
    delete_session,
    get_session_provider_role,
    get_session_user_id,
)
from .users import (
    assign_role,
    count_users,
    create_user,
    delete_user_by_external_id,
    get_user_by_external_id,
    get_user_by_id,
    set_user_organisation,
    update_user_profile,
)
from .workflows import (
    count_workflows,
    create_workflow,
    create_workflow_category,
    create_workflow_department,
    list_workflow_categories,
    list_workflow_departments,
    list_workflows,
)

__all__ = [name for name in globals() if not name.startswith("_")]
