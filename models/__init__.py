"""Relational schema for complaint intake, routing, and the staff audit trail."""
from datetime import datetime

from flask_login import UserMixin
from werkzeug.security import check_password_hash, generate_password_hash

from extensions import db


COMPLAINT_STATUSES: tuple[str, ...] = (
	"submitted",
	"pending",
	"under_review",
	"in_progress",
	"responded",
	"resolved",
	"closed",
	"rejected",
)

# Nothing prevents a status change after these; they only drive reporting.
TERMINAL_STATUSES: tuple[str, ...] = (
	"resolved",
	"closed",
	"rejected",
)

COMPLAINT_PRIORITIES: tuple[str, ...] = (
	"low",
	"medium",
	"high",
)

USER_ROLES: tuple[str, ...] = (
	"citizen",
	"admin",
	"institution_admin",
)

STAFF_ROLES: tuple[str, ...] = (
	"admin",
	"institution_admin",
)


def _in_list(column: str, values) -> str:
	return f"{column} IN (" + ",".join(f"'{value}'" for value in values) + ")"


class Institution(db.Model):
	__tablename__ = "institutions"

	id = db.Column(db.Integer, primary_key=True)
	name = db.Column(db.String(255), nullable=False, index=True)
	code = db.Column(db.String(50), unique=True, nullable=False)
	description = db.Column(db.Text, nullable=True)
	province = db.Column(db.String(100), nullable=True)
	# NULL district marks the catch-all institution used when no district matches.
	district = db.Column(db.String(100), nullable=True, index=True)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

	users = db.relationship("User", back_populates="institution", lazy="dynamic")
	complaints = db.relationship("Complaint", back_populates="institution", lazy="dynamic")

	def to_dict(self) -> dict:
		return {
			"id": self.id,
			"name": self.name,
			"code": self.code,
			"description": self.description,
			"province": self.province,
			"district": self.district,
		}


class Category(db.Model):
	__tablename__ = "categories"

	id = db.Column(db.Integer, primary_key=True)
	name = db.Column(db.String(255), nullable=False, index=True)
	code = db.Column(db.String(50), unique=True, nullable=False)
	description = db.Column(db.Text, nullable=True)
	parent_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True, index=True)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

	parent = db.relationship("Category", remote_side=[id], back_populates="subcategories")
	subcategories = db.relationship("Category", back_populates="parent", order_by="Category.name")

	def to_dict(self) -> dict:
		return {
			"id": self.id,
			"name": self.name,
			"code": self.code,
			"description": self.description,
		}


class User(UserMixin, db.Model):
	__tablename__ = "users"

	id = db.Column(db.Integer, primary_key=True)
	email = db.Column(db.String(255), unique=True, nullable=False, index=True)
	full_name = db.Column(db.String(150), nullable=False)
	password_hash = db.Column(db.String(255), nullable=True)
	role = db.Column(db.String(30), nullable=False, default="citizen", index=True)
	institution_id = db.Column(db.Integer, db.ForeignKey("institutions.id"), nullable=True, index=True)
	is_active = db.Column(db.Boolean, default=True, nullable=False)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
	last_login_at = db.Column(db.DateTime, nullable=True)

	__table_args__ = (
		db.CheckConstraint(
			_in_list("role", USER_ROLES),
			name="ck_user_role_valid",
		),
	)

	institution = db.relationship("Institution", back_populates="users")
	complaints = db.relationship("Complaint", back_populates="citizen", lazy="dynamic")

	def set_password(self, password: str) -> None:
		self.password_hash = generate_password_hash(password, method="pbkdf2:sha256", salt_length=16)

	def check_password(self, password: str) -> bool:
		if not self.password_hash:
			return False
		return check_password_hash(self.password_hash, password)

	def to_session_dict(self) -> dict:
		return {
			"id": self.id,
			"email": self.email,
			"full_name": self.full_name,
			"role": self.role,
			"institution_id": self.institution_id,
		}


class Complaint(db.Model):
	__tablename__ = "complaints"

	id = db.Column(db.Integer, primary_key=True)
	tracking_id = db.Column(db.String(20), unique=True, nullable=False, index=True)
	title = db.Column(db.String(255), nullable=False)
	description = db.Column(db.Text, nullable=False)
	category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=False, index=True)
	subcategory_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True)
	status = db.Column(db.String(20), nullable=False, default="submitted", index=True)
	priority = db.Column(db.String(10), nullable=False, default="medium")
	location = db.Column(db.Text, nullable=False)
	province = db.Column(db.String(100), nullable=False, index=True)
	district = db.Column(db.String(100), nullable=False)
	sector = db.Column(db.String(100), nullable=True)
	citizen_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
	institution_id = db.Column(db.Integer, db.ForeignKey("institutions.id"), nullable=True, index=True)
	is_anonymous = db.Column(db.Boolean, default=False, nullable=False)
	contact_info = db.Column(db.String(255), nullable=True)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
	updated_at = db.Column(db.DateTime, nullable=True)

	__table_args__ = (
		db.CheckConstraint(
			_in_list("status", COMPLAINT_STATUSES),
			name="ck_complaint_status_valid",
		),
		db.CheckConstraint(
			_in_list("priority", COMPLAINT_PRIORITIES),
			name="ck_complaint_priority_valid",
		),
		db.Index("ix_complaints_institution_status", "institution_id", "status"),
	)

	category = db.relationship("Category", foreign_keys=[category_id])
	subcategory = db.relationship("Category", foreign_keys=[subcategory_id])
	citizen = db.relationship("User", back_populates="complaints")
	institution = db.relationship("Institution", back_populates="complaints")
	updates = db.relationship(
		"Update",
		back_populates="complaint",
		order_by="Update.created_at",
		cascade="all, delete-orphan",
	)
	messages = db.relationship(
		"Message",
		back_populates="complaint",
		order_by="Message.created_at",
		cascade="all, delete-orphan",
	)
	attachments = db.relationship(
		"Attachment",
		back_populates="complaint",
		order_by="Attachment.created_at",
		cascade="all, delete-orphan",
	)

	@property
	def is_terminal(self) -> bool:
		return self.status in TERMINAL_STATUSES


class Update(db.Model):
	__tablename__ = "updates"

	id = db.Column(db.Integer, primary_key=True)
	complaint_id = db.Column(db.Integer, db.ForeignKey("complaints.id"), nullable=False, index=True)
	status = db.Column(db.String(20), nullable=False, index=True)
	comment = db.Column(db.Text, nullable=True)
	# NULL for the automatic record written at intake.
	user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

	__table_args__ = (
		db.CheckConstraint(
			_in_list("status", COMPLAINT_STATUSES),
			name="ck_update_status_valid",
		),
	)

	complaint = db.relationship("Complaint", back_populates="updates")
	actor = db.relationship("User")

	def to_dict(self) -> dict:
		return {
			"id": self.id,
			"status": self.status,
			"comment": self.comment,
			"created_at": self.created_at,
		}


class Message(db.Model):
	__tablename__ = "messages"

	id = db.Column(db.Integer, primary_key=True)
	complaint_id = db.Column(db.Integer, db.ForeignKey("complaints.id"), nullable=False, index=True)
	sender_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
	content = db.Column(db.Text, nullable=False)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

	complaint = db.relationship("Complaint", back_populates="messages")
	sender = db.relationship("User")


class Attachment(db.Model):
	__tablename__ = "attachments"

	id = db.Column(db.Integer, primary_key=True)
	complaint_id = db.Column(db.Integer, db.ForeignKey("complaints.id"), nullable=False, index=True)
	file_name = db.Column(db.String(255), nullable=False)
	file_type = db.Column(db.String(120), nullable=True)
	file_size = db.Column(db.Integer, nullable=True)
	file_url = db.Column(db.String(1024), nullable=False)
	file_path = db.Column(db.String(500), nullable=False)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

	complaint = db.relationship("Complaint", back_populates="attachments")

	def to_dict(self) -> dict:
		return {
			"id": self.id,
			"file_name": self.file_name,
			"file_type": self.file_type,
			"file_size": self.file_size,
			"file_url": self.file_url,
			"file_path": self.file_path,
			"created_at": self.created_at,
		}
