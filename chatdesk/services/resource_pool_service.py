# chatdesk/services/resource_pool_service.py
# -*- coding: utf-8 -*-
"""
Resource Pool Service
Pre-provisioned contact inventory. Admins load and assign entries; users
import their entries into a chatroom (as contacts) or a line (as client
assignments). Imports skip records that already exist and mark every
processed entry as imported.
Service methods modify the session but DO NOT COMMIT.
"""
from dataclasses import dataclass
from datetime import datetime, timezone

from flask import current_app

from chatdesk.database.models.chatroom import ContactModel
from chatdesk.database.models.resource_pool import ResourcePoolModel
from chatdesk.database.models.user import UserModel
from chatdesk.extensions import db
from chatdesk.services.access_service import AccessService
from chatdesk.services.chatroom_service import ChatroomService
from chatdesk.services.inbound_service import InboundService
from chatdesk.services.line_service import LineService
from chatdesk.utils.exceptions import ValidationError, ResourceNotFound, AccessDenied, ConflictError


@dataclass(frozen=True)
class ImportSummary:
    imported: int
    skipped: int

    @property
    def message(self) -> str:
        text = f"Imported {self.imported} client{'s' if self.imported != 1 else ''}"
        if self.skipped:
            text += f", skipped {self.skipped} (already exist)"
        return text


class ResourcePoolService:

    # --- Admin ---

    @staticmethod
    def add_entries(entries: list[dict]) -> list[ResourcePoolModel]:
        """
        Adds pool entries (DOES NOT COMMIT).

        Args:
            entries (list[dict]): Each with phone_number and optional first_name,
                                  last_name, email, company, tags.

        Raises:
            ValidationError: If the list is empty or an entry has no phone number.
        """
        if not entries:
            raise ValidationError("No resource entries provided.")
        created = []
        for index, entry in enumerate(entries):
            phone_number = (entry.get('phone_number') or '').strip()
            if not phone_number:
                raise ValidationError(f"Entry {index} has no phone number.")
            resource = ResourcePoolModel(
                phone_number=phone_number,
                first_name=entry.get('first_name'),
                last_name=entry.get('last_name'),
                email=entry.get('email'),
                company=entry.get('company'),
                tags=entry.get('tags') or [],
                import_status='available',
            )
            db.session.add(resource)
            created.append(resource)
        db.session.flush()
        current_app.logger.info(f"Added {len(created)} resource pool entries to session.")
        return created

    @staticmethod
    def list_pool(import_status: str | None = None, assigned_to_user_id: int | None = None,
                  page: int = 1, per_page: int = 50):
        query = db.session.query(ResourcePoolModel)
        if import_status:
            query = query.filter_by(import_status=import_status)
        if assigned_to_user_id is not None:
            query = query.filter_by(assigned_to_user_id=assigned_to_user_id)
        return query.order_by(ResourcePoolModel.id).paginate(page=page, per_page=per_page, error_out=False, count=True)

    @staticmethod
    def assign(resource_ids: list[int], user_id: int) -> int:
        """
        Assigns available or assigned entries to a user (DOES NOT COMMIT).
        Imported entries keep their owner and are left untouched.

        Returns:
            int: Number of entries assigned.
        """
        if not resource_ids:
            raise ValidationError("resource_ids must not be empty.")
        if db.session.get(UserModel, user_id) is None:
            raise ResourceNotFound(f"User with ID {user_id} not found.")

        now = datetime.now(timezone.utc)
        resources = db.session.query(ResourcePoolModel)\
                              .filter(ResourcePoolModel.id.in_(resource_ids),
                                      ResourcePoolModel.import_status != 'imported')\
                              .all()
        for resource in resources:
            resource.assigned_to_user_id = user_id
            resource.assigned_at = now
            resource.import_status = 'assigned'
        db.session.flush()
        current_app.logger.info(f"Assigned {len(resources)} resource pool entries to user {user_id}.")
        return len(resources)

    @staticmethod
    def unassign(resource_ids: list[int]) -> int:
        """Returns not-yet-imported entries to the pool (DOES NOT COMMIT)."""
        if not resource_ids:
            raise ValidationError("resource_ids must not be empty.")
        resources = db.session.query(ResourcePoolModel)\
                              .filter(ResourcePoolModel.id.in_(resource_ids),
                                      ResourcePoolModel.import_status == 'assigned')\
                              .all()
        for resource in resources:
            resource.assigned_to_user_id = None
            resource.assigned_at = None
            resource.import_status = 'available'
        db.session.flush()
        current_app.logger.info(f"Returned {len(resources)} resource pool entries to the pool.")
        return len(resources)

    # --- User ---

    @staticmethod
    def my_resources(user: UserModel, import_status: str | None = None) -> list[ResourcePoolModel]:
        query = db.session.query(ResourcePoolModel).filter_by(assigned_to_user_id=user.id)
        if import_status:
            query = query.filter_by(import_status=import_status)
        return query.order_by(ResourcePoolModel.id).all()

    @staticmethod
    def add_own_resource(user: UserModel, phone_number: str, first_name: str | None = None,
                         last_name: str | None = None, email: str | None = None,
                         tags: list | None = None) -> ResourcePoolModel:
        """A user adds an entry straight into their own pool (DOES NOT COMMIT)."""
        phone_number = (phone_number or '').strip()
        if not phone_number:
            raise ValidationError("Phone number is required.")
        exists = db.session.query(ResourcePoolModel.id)\
                           .filter_by(phone_number=phone_number, assigned_to_user_id=user.id)\
                           .first()
        if exists:
            raise ConflictError("This resource already exists in your pool.")
        resource = ResourcePoolModel(
            phone_number=phone_number,
            first_name=first_name,
            last_name=last_name,
            email=email,
            tags=tags or [],
            assigned_to_user_id=user.id,
            assigned_at=datetime.now(timezone.utc),
            import_status='assigned',
        )
        db.session.add(resource)
        db.session.flush()
        current_app.logger.info(f"User {user.id} added resource {resource.id} to their pool.")
        return resource

    @staticmethod
    def _owned_resources(user: UserModel, resource_ids: list[int]) -> list[ResourcePoolModel]:
        if not resource_ids:
            raise ValidationError("resource_ids must not be empty.")
        wanted = set(resource_ids)
        resources = db.session.query(ResourcePoolModel)\
                              .filter(ResourcePoolModel.id.in_(wanted),
                                      ResourcePoolModel.assigned_to_user_id == user.id)\
                              .order_by(ResourcePoolModel.id)\
                              .all()
        if len(resources) != len(wanted):
            raise AccessDenied("Some resources are not assigned to you or do not exist.")
        return resources

    @staticmethod
    def _mark_imported(resource: ResourcePoolModel, now: datetime) -> None:
        resource.import_status = 'imported'
        resource.imported_at = now

    @staticmethod
    def import_to_chatroom(user: UserModel, resource_ids: list[int], chatroom_id: int) -> ImportSummary:
        """
        Materializes the user's resources as contacts of a chatroom (DOES NOT COMMIT).

        Raises:
            ValidationError: If resource_ids is empty.
            ResourceNotFound: If the chatroom does not exist.
            AccessDenied: If the user has no grant on the chatroom, or any resource is not theirs.
        """
        ChatroomService.get_chatroom(chatroom_id)
        AccessService.require_chatroom(user, chatroom_id)
        resources = ResourcePoolService._owned_resources(user, resource_ids)

        now = datetime.now(timezone.utc)
        imported = skipped = 0
        for resource in resources:
            exists = db.session.query(ContactModel.id)\
                               .filter_by(chatroom_id=chatroom_id, phone_number=resource.phone_number)\
                               .first()
            if exists:
                skipped += 1
            else:
                db.session.add(ContactModel(
                    chatroom_id=chatroom_id,
                    user_id=user.id,
                    name=resource.display_name,
                    phone_number=resource.phone_number,
                    email=resource.email,
                    tags=list(resource.tags or []),
                    added_via='import',
                ))
                db.session.flush()
                imported += 1
            ResourcePoolService._mark_imported(resource, now)
        db.session.flush()

        summary = ImportSummary(imported=imported, skipped=skipped)
        current_app.logger.info(f"User {user.id} imported resources into chatroom {chatroom_id}: {summary.message}.")
        return summary

    @staticmethod
    def import_to_line(user: UserModel, resource_ids: list[int], line_id: int) -> ImportSummary:
        """
        Materializes the user's resources as client assignments on one of their
        lines (DOES NOT COMMIT). Contacts are found or created in the line's chatroom.

        Raises:
            ValidationError: If resource_ids is empty or the line has no chatroom.
            ResourceNotFound: If the line does not exist.
            AccessDenied: If the user does not own the line, or any resource is not theirs.
        """
        line = LineService.get_line(line_id)
        AccessService.require_line(user, line)
        if line.assigned_chatroom_id is None:
            raise ValidationError(f"Line {line_id} is not assigned to a chatroom.")
        resources = ResourcePoolService._owned_resources(user, resource_ids)

        now = datetime.now(timezone.utc)
        imported = skipped = 0
        for resource in resources:
            contact, _ = InboundService.find_or_create_contact(
                line.assigned_chatroom_id, resource.phone_number,
                name=resource.display_name, user_id=user.id,
            )
            _, created = LineService.find_or_create_assignment(
                line, contact, label=resource.display_name, source_resource_id=resource.id,
            )
            if created:
                imported += 1
            else:
                skipped += 1
            ResourcePoolService._mark_imported(resource, now)
        db.session.flush()

        summary = ImportSummary(imported=imported, skipped=skipped)
        current_app.logger.info(f"User {user.id} imported resources into line {line_id}: {summary.message}.")
        return summary
