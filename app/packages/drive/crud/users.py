"""用户 CRUD：集中管理用户相关的数据操作。"""

from typing import Iterable, Optional

from sqlalchemy import delete
from sqlalchemy.orm import Session

from app.packages.drive.crud.base import CRUDBase
from app.packages.drive.models.node import FileNodePermission, MetaNodePermission
from app.packages.drive.models.user import User


class CRUDUser(CRUDBase[User]):
    """封装常用的用户查询方法，供业务层复用。"""

    def get_by_username(self, db: Session, username: str) -> Optional[User]:
        """根据用户名获取用户实例。"""
        return self.query(db).filter(User.username == username).first()

    def existing_usernames(self, db: Session, usernames: Iterable[str]) -> set[str]:
        """批量判断用户名是否存在，只发起一次查询。"""
        return self.existing_values(db, User.username, usernames)

    def revoke_grants(self, db: Session, username: str) -> int:
        """从所有节点的权限表中移除该用户的授权，返回受影响的行数。"""
        removed = 0
        for model in (FileNodePermission, MetaNodePermission):
            result = db.execute(
                delete(model).where(model.grantee == username).execution_options(synchronize_session=False)
            )
            removed += result.rowcount or 0
        return removed


user_crud = CRUDUser(User)
