"""
Audit Trail Model
User action logging for workflow transitions
"""
from sqlalchemy import Column, String, Integer, DateTime, JSON
from stockrecon.core.database import Base
from datetime import datetime


class AuditLog(Base):
    """Audit trail for engine state changes"""
    __tablename__ = "audit_log"

    audit_id = Column(Integer, primary_key=True)
    tenant_id = Column(String(36), index=True)
    audit_timestamp = Column(DateTime, default=datetime.utcnow, index=True)
    audit_user = Column(String(36), nullable=False, index=True)
    audit_action = Column(String(30), nullable=False, index=True)  # CREATE, SUBMIT, APPROVE, REVERSE, etc
    audit_table = Column(String(50), index=True)
    audit_key = Column(String(100))
    audit_old_values = Column(JSON)
    audit_new_values = Column(JSON)
    audit_module = Column(String(10))  # STOCK, GL
