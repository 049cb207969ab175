"""
Demo data: the `demo` tenant, one user per role and the micro_loan_v1 workflow.

Runs at startup when SEED_DEMO_DATA is set, or directly:
    python -m caseflow.scripts.seed_demo
"""
import asyncio
import logging
import uuid

from sqlalchemy import func, select

from caseflow.core.config import settings
from caseflow.core.database import Database
from caseflow.core.security import hash_password
from caseflow.models.base_models import Tenant, User
from caseflow.modules.workflow.application.workflow_service import WorkflowService

logger = logging.getLogger("caseflow.seed")

DEMO_TENANT = {
    "name": "Demo Financial Services",
    "domain": "demo",
    "settings": {"theme": "default", "currency": "INR", "timezone": "Asia/Kolkata"},
}

DEMO_USERS = [
    ("admin@demo.com", "admin123", "System Admin", "Admin"),
    ("maker@demo.com", "maker123", "John Maker", "Maker"),
    ("checker@demo.com", "checker123", "Jane Checker", "Checker"),
    ("underwriter@demo.com", "underwriter123", "Bob Underwriter", "Underwriter"),
    ("disbursement@demo.com", "disburse123", "Dana Disbursement", "DisbursementOfficer"),
    ("auditor@demo.com", "auditor123", "Alex Auditor", "Auditor"),
]

MICRO_LOAN_WORKFLOW = {
    "workflowId": "micro_loan_v1",
    "version": 1,
    "name": "Micro Loan Processing",
    "description": "Standard micro loan processing workflow",
    "stages": [
        {"id": "draft", "label": "Draft", "slaHours": 48, "description": "Initial loan application"},
        {"id": "doc_verify", "label": "Document Verification", "slaHours": 24,
         "description": "Verify submitted documents"},
        {"id": "underwriting", "label": "Underwriting", "slaHours": 48,
         "description": "Credit assessment and risk evaluation"},
        {"id": "approval", "label": "Approval", "slaHours": 12, "description": "Final approval decision"},
        {"id": "disbursement", "label": "Disbursement", "slaHours": 24, "description": "Loan disbursement process"},
        {"id": "completed", "label": "Completed", "slaHours": 0, "description": "Loan successfully disbursed"},
    ],
    "transitions": [
        {
            "id": "submit_application", "from": "draft", "to": "doc_verify",
            "label": "Submit Application", "condition": "true",
            "roles": ["Maker"], "actions": ["validate_basic_info"],
        },
        {
            "id": "verify_documents", "from": "doc_verify", "to": "underwriting",
            "label": "Documents Verified", "condition": "docs_verified == true",
            "roles": ["Checker"], "actions": ["trigger_ai_scoring"],
        },
        {
            "id": "complete_underwriting", "from": "underwriting", "to": "approval",
            "label": "Underwriting Complete", "condition": "underwriting_complete == true",
            "roles": ["Underwriter"], "actions": ["generate_recommendation"],
        },
        {
            "id": "approve_loan", "from": "approval", "to": "disbursement",
            "label": "Approve Loan", "condition": 'decision == "approved"',
            "roles": ["Admin", "Underwriter"], "actions": ["create_loan_account"],
        },
        {
            "id": "disburse_loan", "from": "disbursement", "to": "completed",
            "label": "Disburse Funds", "condition": "disbursement_ready == true",
            "roles": ["DisbursementOfficer"], "actions": ["transfer_funds", "send_confirmation"],
        },
    ],
    "autoRules": [
        {
            "id": "auto_score", "stage": "doc_verify", "trigger": "onEnter",
            "action": "call:ai/score", "params": {"model": "credit_scoring_v1"},
            "condition": "documents_complete == true",
        },
        {
            "id": "auto_approve_low_risk", "stage": "underwriting", "trigger": "onEnter",
            "action": "auto_transition",
            "params": {"target_stage": "approval", "decision": "auto_approved"},
            "condition": "pd_score < 0.05 && requested_amount < 100000",
        },
    ],
}


async def seed_demo(db: Database) -> bool:
    """Insert demo data into an empty database. Returns False when tenants already exist."""
    async with db.session_factory() as session:
        existing = (await session.execute(select(func.count()).select_from(Tenant))).scalar() or 0
        if existing:
            logger.info("tenants already present; skipping demo seed")
            return False

        tenant = Tenant(id=str(uuid.uuid4()), is_active=True, **DEMO_TENANT)
        session.add(tenant)

        admin_id = None
        for email, password, name, role in DEMO_USERS:
            user = User(
                id=str(uuid.uuid4()),
                tenant_id=tenant.id,
                email=email,
                password_hash=hash_password(password),
                name=name,
                role=role,
                is_active=True,
            )
            session.add(user)
            if role == "Admin":
                admin_id = user.id
        await session.flush()

        await WorkflowService.create(
            session,
            tenant_id=tenant.id,
            workflow_id=MICRO_LOAN_WORKFLOW["workflowId"],
            name=MICRO_LOAN_WORKFLOW["name"],
            description=MICRO_LOAN_WORKFLOW["description"],
            config=MICRO_LOAN_WORKFLOW,
            created_by=admin_id,
        )
        await session.commit()

    logger.info(f"demo data seeded tenant=demo users={len(DEMO_USERS)} workflow=micro_loan_v1")
    return True


async def main() -> None:
    db = Database(settings.DATABASE_URL, echo=settings.DATABASE_ECHO)
    try:
        await db.create_all()
        await seed_demo(db)
    finally:
        await db.dispose()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())
