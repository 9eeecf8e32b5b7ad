# models.py: Flask-SQLAlchemy models
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from sqlalchemy import Index, text
from flask_login import UserMixin
from werkzeug.security import check_password_hash, generate_password_hash
from extensions import db


def utcnow():
    """Naive UTC timestamp; every datetime column stores UTC without tzinfo."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _iso(value):
    return value.isoformat() if value else None


def _money(value):
    return float(value) if value is not None else 0.0

# ===========================================================
# ENUM DEFINITIONS
# ===========================================================

class TransactionType(Enum):
    DEPOSIT = "deposit"
    ROI = "roi"
    COMMISSION = "commission"
    WITHDRAWAL = "withdrawal"


class TransactionStatus(Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class WithdrawalStatus(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


# ===========================================================
# BASE MIXIN FOR COMMON FIELDS
# ===========================================================

class BaseMixin:
    """Provides created_at to inheriting models."""
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)

# ===========================================================
# USER MODEL
# ===========================================================

class User(db.Model, BaseMixin, UserMixin):
    """Investor account. `referred_by` holds the referrer's code, not an id."""
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    full_name = db.Column(db.String(150), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    phone = db.Column(db.String(20), nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)

    bank_name = db.Column(db.String(100), nullable=False)
    account_number = db.Column(db.String(20), nullable=False)
    account_name = db.Column(db.String(150), nullable=False)

    category = db.Column(db.String(20), nullable=False, default="bronze", index=True)
    referral_code = db.Column(db.String(32), unique=True, nullable=True)
    referred_by = db.Column(db.String(32), nullable=True, index=True)

    is_active = db.Column(db.Boolean, default=True, nullable=False)
    is_admin = db.Column(db.Boolean, default=False, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    investments = db.relationship('InvestmentPackage', back_populates='user', lazy='dynamic')
    referrals_made = db.relationship('Referral', back_populates='referrer',
                                     foreign_keys='Referral.referrer_id', lazy='dynamic')
    referral_received = db.relationship('Referral', back_populates='referred',
                                        foreign_keys='Referral.referred_id', uselist=False)
    withdrawals = db.relationship('WithdrawalRequest', back_populates='user', lazy='dynamic')
    transactions = db.relationship('Transaction', back_populates='user', lazy='dynamic')
    category_upgrades = db.relationship('CategoryUpgrade', back_populates='user', lazy='dynamic')

    def set_password(self, password: str):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    def to_dict(self):
        """Serialize user for JSON responses; never exposes the password hash."""
        return {
            "id": self.id,
            "fullName": self.full_name,
            "email": self.email,
            "phone": self.phone,
            "bankName": self.bank_name,
            "accountNumber": self.account_number,
            "accountName": self.account_name,
            "category": self.category,
            "referralCode": self.referral_code,
            "referredBy": self.referred_by,
            "isActive": self.is_active,
            "isAdmin": self.is_admin,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }

    def __repr__(self):
        return f"<User {self.id} {self.referral_code} {self.category}>"

# ===========================================================
# INVESTMENTS
# ===========================================================

class InvestmentPackage(db.Model, BaseMixin):
    __tablename__ = 'investment_packages'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    category = db.Column(db.String(20), nullable=False)  # category of the package, not of the user
    amount = db.Column(db.Numeric(15, 2), nullable=False)
    duration = db.Column(db.Integer, nullable=False)  # in months
    monthly_roi = db.Column(db.Numeric(15, 2), nullable=False)
    total_earned = db.Column(db.Numeric(15, 2), default=Decimal("0"), server_default=text("0"))
    is_active = db.Column(db.Boolean, default=True)
    start_date = db.Column(db.DateTime, default=utcnow)
    maturity_date = db.Column(db.DateTime, nullable=False)

    user = db.relationship('User', back_populates='investments')

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "category": self.category,
            "amount": _money(self.amount),
            "duration": self.duration,
            "monthlyRoi": _money(self.monthly_roi),
            "totalEarned": _money(self.total_earned),
            "isActive": self.is_active,
            "startDate": _iso(self.start_date),
            "maturityDate": _iso(self.maturity_date),
            "createdAt": _iso(self.created_at),
        }

# ===========================================================
# REFERRALS
# ===========================================================

class Referral(db.Model, BaseMixin):
    """One referrer -> referred edge. commission_rate is frozen at creation."""
    __tablename__ = 'referrals'

    id = db.Column(db.Integer, primary_key=True)
    referrer_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    referred_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, unique=True)
    commission_rate = db.Column(db.Numeric(5, 2), nullable=False)
    commission_earned = db.Column(db.Numeric(15, 2), default=Decimal("0"), server_default=text("0"))
    is_active = db.Column(db.Boolean, default=True)

    referrer = db.relationship('User', foreign_keys=[referrer_id], back_populates='referrals_made')
    referred = db.relationship('User', foreign_keys=[referred_id], back_populates='referral_received')

    def to_dict(self):
        return {
            "id": self.id,
            "referrerId": self.referrer_id,
            "referredId": self.referred_id,
            "commissionRate": _money(self.commission_rate),
            "commissionEarned": _money(self.commission_earned),
            "isActive": self.is_active,
            "createdAt": _iso(self.created_at),
        }


class CategoryUpgrade(db.Model, BaseMixin):
    """Append-only audit trail of automatic category promotions."""
    __tablename__ = 'category_upgrades'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    from_category = db.Column(db.String(20), nullable=False)
    to_category = db.Column(db.String(20), nullable=False)
    upgrade_reason = db.Column(db.String(255))
    total_investment_threshold = db.Column(db.Numeric(15, 2), nullable=False)

    user = db.relationship('User', back_populates='category_upgrades')

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "fromCategory": self.from_category,
            "toCategory": self.to_category,
            "upgradeReason": self.upgrade_reason,
            "totalInvestmentThreshold": _money(self.total_investment_threshold),
            "createdAt": _iso(self.created_at),
        }

# ===========================================================
# WITHDRAWALS & TRANSACTIONS
# ===========================================================

class WithdrawalRequest(db.Model):
    __tablename__ = 'withdrawal_requests'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    amount = db.Column(db.Numeric(15, 2), nullable=False)
    bank_name = db.Column(db.String(100), nullable=False)
    account_number = db.Column(db.String(20), nullable=False)
    account_name = db.Column(db.String(150), nullable=False)
    status = db.Column(db.String(20), default=WithdrawalStatus.PENDING.value, nullable=False, index=True)
    admin_notes = db.Column(db.Text)
    requested_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    processed_at = db.Column(db.DateTime, nullable=True)

    user = db.relationship('User', back_populates='withdrawals')

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "amount": _money(self.amount),
            "bankName": self.bank_name,
            "accountNumber": self.account_number,
            "accountName": self.account_name,
            "status": self.status,
            "adminNotes": self.admin_notes,
            "requestedAt": _iso(self.requested_at),
            "processedAt": _iso(self.processed_at),
        }


class Transaction(db.Model, BaseMixin):
    __tablename__ = 'transactions'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    type = db.Column(db.String(20), nullable=False)  # deposit, roi, commission, withdrawal
    amount = db.Column(db.Numeric(15, 2), nullable=False)
    reference = db.Column(db.String(120), unique=True, nullable=True)
    status = db.Column(db.String(20), default=TransactionStatus.PENDING.value, nullable=False)
    description = db.Column(db.String(255))
    meta = db.Column('metadata', db.JSON)

    user = db.relationship('User', back_populates='transactions')

    __table_args__ = (
        Index('idx_transaction_type_created', 'type', 'created_at'),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "type": self.type,
            "amount": _money(self.amount),
            "reference": self.reference,
            "status": self.status,
            "description": self.description,
            "metadata": self.meta,
            "createdAt": _iso(self.created_at),
        }

# ===========================================================
# AUDITING
# ===========================================================

class AnalyticsEvent(db.Model, BaseMixin):
    __tablename__ = 'analytics_events'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True, index=True)
    event_type = db.Column(db.String(50), nullable=False, index=True)
    event_data = db.Column(db.JSON)
    ip_address = db.Column(db.String(45))
    user_agent = db.Column(db.String(255))
