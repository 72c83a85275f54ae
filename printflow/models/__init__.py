"""Database models — re-exports all models.

Import from here:  from printflow.models import Job, PurchaseOrder, ...
Or from submodules: from printflow.models.jobs import Job
"""

from .base import Base  # noqa: F401

# Parties
from .companies import Company, Vendor  # noqa: F401

# Jobs
from .jobs import Job, JobActivity, JobFile  # noqa: F401

# Purchase orders
from .purchasing import PurchaseOrder, WebhookEvent, target_key_for  # noqa: F401

# Invoices & numbering
from .invoicing import DocumentSequence, Invoice  # noqa: F401

# Proofs
from .proofs import Proof, ProofApproval  # noqa: F401

# Notifications
from .notifications import Notification  # noqa: F401

# Pricing
from .pricing import PricingRule  # noqa: F401
