from sqlalchemy.orm import Session
from storefront.data.database import ends_transaction
from storefront.data.models.user import UserModel
from storefront.repos.user_repo import UserRepo
from storefront.domain.schemas import UserCreate, UserRead
from storefront.utils.exceptions import InvalidArgument, NotFound
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class UserService:
    def __init__(self, db: Session):
        self.repo = UserRepo(db)

    @ends_transaction
    def create_user(self, payload: UserCreate) -> UserRead:
        # creating an existing id returns it unchanged
        existing = self.repo.get_user(payload.id)
        if existing:
            return UserRead.model_validate(existing)

        if payload.email:
            owner = self.repo.get_user_by_email(payload.email)
            if owner:
                raise InvalidArgument(f"Email already registered: {payload.email}", user_id=owner.id)

        user = UserModel(id=payload.id, name=payload.name, email=payload.email, role=payload.role.value)
        try:
            created = self.repo.add_user(user)
            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise

        logger.info(f"Created user {created.id} ({created.role})")
        return UserRead.model_validate(created)

    @ends_transaction
    def get_user(self, user_id: int) -> UserRead:
        user = self.repo.get_user(user_id)
        if not user:
            raise NotFound(f"User not found with id: {user_id}", user_id=user_id)
        return UserRead.model_validate(user)
