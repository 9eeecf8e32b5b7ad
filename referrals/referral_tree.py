from typing import Any, Dict, Iterable, List, Optional
import logging

from sqlalchemy import select

from extensions import db
from models import User


logger = logging.getLogger(__name__)

MAX_TREE_DEPTH = 5  # root is depth 0; deeper nodes are dropped from `children`
IN_CLAUSE_CHUNK = 500

_NODE_COLUMNS = (
    User.id,
    User.full_name,
    User.category,
    User.referral_code,
    User.referred_by,
    User.created_at,
)


def _chunks(items: List[str], size: int = IN_CLAUSE_CHUNK) -> Iterable[List[str]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


class ReferralTreeHelper:
    """
    Downline reads over the code-based `users.referred_by` back-reference.

    The whole downline is fetched level by level (one batched IN query per
    level) into an adjacency index `referral_code -> [child rows]`; the tree
    and the downline counts are then computed in memory.
    """

    @staticmethod
    def get_node_row(user_id: int):
        return db.session.execute(
            select(*_NODE_COLUMNS).where(User.id == user_id)
        ).first()

    @staticmethod
    def load_downline_index(root) -> Dict[str, list]:
        """
        Map each referral code in root's downline to the rows it referred.
        Every user id is indexed once, so a corrupted graph cannot loop.
        """
        children_by_code: Dict[str, list] = {}
        seen = {root.id}
        frontier = [root.referral_code] if root.referral_code else []

        while frontier:
            next_frontier = []
            for chunk in _chunks(frontier):
                rows = db.session.execute(
                    select(*_NODE_COLUMNS)
                    .where(User.referred_by.in_(chunk))
                    .order_by(User.created_at, User.id)
                ).all()
                for row in rows:
                    if row.id in seen:
                        logger.warning(f"User {row.id} reached twice while indexing downline of {root.id}")
                        continue
                    seen.add(row.id)
                    children_by_code.setdefault(row.referred_by, []).append(row)
                    if row.referral_code:
                        next_frontier.append(row.referral_code)
            frontier = next_frontier

        return children_by_code

    @staticmethod
    def _children(row, index: Dict[str, list]) -> list:
        if not row.referral_code:
            return []
        return index.get(row.referral_code, [])

    @staticmethod
    def downline_totals(root, index: Dict[str, list]) -> Dict[int, int]:
        """Full-depth descendant count for every node of the index (iterative post-order)."""
        totals: Dict[int, int] = {}
        stack = [(root, False)]
        while stack:
            row, expanded = stack.pop()
            kids = ReferralTreeHelper._children(row, index)
            if expanded:
                totals[row.id] = len(kids) + sum(totals.get(kid.id, 0) for kid in kids)
            else:
                stack.append((row, True))
                stack.extend((kid, False) for kid in kids)
        return totals

    @staticmethod
    def _build_node(row, index, totals, depth: int) -> Optional[Dict[str, Any]]:
        if depth > MAX_TREE_DEPTH:
            return None

        kids = ReferralTreeHelper._children(row, index)
        children = []
        for kid in kids:
            node = ReferralTreeHelper._build_node(kid, index, totals, depth + 1)
            if node is not None:
                children.append(node)

        return {
            "id": row.id,
            "name": row.full_name,
            "category": row.category,
            "referralCode": row.referral_code,
            "joinDate": row.created_at.isoformat() if row.created_at else None,
            "children": children,
            "stats": {
                "directReferrals": len(kids),
                "totalDownline": totals.get(row.id, 0),
            },
        }

    @staticmethod
    def build_downline_tree(root_user_id: int) -> Optional[Dict[str, Any]]:
        """
        Tree rooted at `root_user_id`, or None if that user does not exist.

        `stats.totalDownline` counts the full downline even where the display
        tree is cut at MAX_TREE_DEPTH.
        """
        root = ReferralTreeHelper.get_node_row(root_user_id)
        if root is None:
            return None

        index = ReferralTreeHelper.load_downline_index(root)
        totals = ReferralTreeHelper.downline_totals(root, index)
        tree = ReferralTreeHelper._build_node(root, index, totals, depth=0)

        logger.debug(
            f"Built referral tree for user {root_user_id}: "
            f"{totals.get(root.id, 0)} downline members"
        )
        return tree

    @staticmethod
    def count_total_downline(user_id: int) -> int:
        root = ReferralTreeHelper.get_node_row(user_id)
        if root is None:
            return 0
        index = ReferralTreeHelper.load_downline_index(root)
        return ReferralTreeHelper.downline_totals(root, index).get(root.id, 0)

    @staticmethod
    def get_direct_referrals(user_id: int) -> List[User]:
        user = db.session.get(User, user_id)
        if user is None or not user.referral_code:
            return []
        return (
            User.query.filter_by(referred_by=user.referral_code)
            .order_by(User.created_at, User.id)
            .all()
        )
