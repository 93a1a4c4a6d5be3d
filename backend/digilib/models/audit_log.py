from sqlalchemy import Column, String, DateTime, JSON, func

from digilib.core.database import Base, GUID, generate_uuid


class AuditLog(Base):
    """Audit log for tracking admin moderation actions"""
    __tablename__ = "audit_logs"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    admin_id = Column(String(255), nullable=False, index=True)

    # Action details
    action = Column(String(100), nullable=False)  # e.g. 'material_approved', 'material_rejected', 'library_seeded'
    target_type = Column(String(50), nullable=False)  # e.g. 'material', 'library'
    target_id = Column(String(255), nullable=True)

    # Snapshot of the affected record
    details = Column(JSON, nullable=True)

    created_at = Column(DateTime, server_default=func.now(), nullable=False, index=True)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "admin_id": self.admin_id,
            "action": self.action,
            "target_type": self.target_type,
            "target_id": self.target_id,
            "details": self.details or {},
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<AuditLog {self.action} by {self.admin_id}>"
