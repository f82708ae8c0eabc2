from abis_e2e.pages.customer import CustomerPage
from abis_e2e.pages.invoice import InvoiceDetails, InvoicePage
from abis_e2e.pages.lead import LeadDetails, LeadPage
from abis_e2e.pages.login import LoginPage
from abis_e2e.pages.prepayment import PrePaymentPage
from abis_e2e.pages.proforma import ProformaDetails, ProformaPage
from abis_e2e.pages.proposal import ProposalDetails, ProposalPage
from abis_e2e.pages.service import ServiceDetails, ServicePage
from abis_e2e.pages.task import TaskPage

__all__ = [
    "CustomerPage",
    "InvoiceDetails",
    "InvoicePage",
    "LeadDetails",
    "LeadPage",
    "LoginPage",
    "PrePaymentPage",
    "ProformaDetails",
    "ProformaPage",
    "ProposalDetails",
    "ProposalPage",
    "ServiceDetails",
    "ServicePage",
    "TaskPage",
]
