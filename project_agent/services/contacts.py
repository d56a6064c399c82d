"""Contact resolution from free-text names or roles."""

from collections.abc import Callable

from project_agent.models.projects import Contact
from project_agent.services.datastore import Datastore
from project_agent.utils.logging import get_logger

logger = get_logger(__name__)

ROLE_ALIASES: dict[str, list[str]] = {
    "homeowner": ["HO", "Homeowner", "Customer", "Client"],
    "roofer": ["Roofer", "Roofing Contractor", "Roofing Company"],
    "project manager": ["PM", "Project Manager", "BidList Project Manager"],
    "solar": ["Solar", "Solar Rep", "Solar Ops", "Solar Representative"],
}

ContactMatcher = Callable[[str, list[Contact]], Contact | None]


def _normalize(value: str | None) -> str:
    return (value or "").strip().lower()


def role_category(value: str | None) -> str | None:
    """Map a role or alias to its canonical category, if any."""
    normalized = _normalize(value)
    if not normalized:
        return None
    for category, aliases in ROLE_ALIASES.items():
        if normalized == category or normalized in (alias.lower() for alias in aliases):
            return category
    return None


def _overlaps(term: str, value: str) -> bool:
    return bool(value) and (term in value or value in term)


def match_exact_name(term: str, contacts: list[Contact]) -> Contact | None:
    for contact in contacts:
        if _normalize(contact.full_name) == term:
            return contact
    return None


def match_role(term: str, contacts: list[Contact]) -> Contact | None:
    """Exact role match, then a match through the alias table.

    A contact matches an alias category when its role normalizes to the category
    or merely contains it, so "PM" finds a "Senior Project Manager".
    """
    for contact in contacts:
        if _normalize(contact.role) == term:
            return contact

    category = role_category(term)
    if category is None:
        return None
    for contact in contacts:
        role = _normalize(contact.role)
        if role_category(role) == category or category in role:
            return contact
    return None


def match_partial_name(term: str, contacts: list[Contact]) -> Contact | None:
    for contact in contacts:
        if _overlaps(term, _normalize(contact.full_name)):
            return contact
    return None


def match_partial_role(term: str, contacts: list[Contact]) -> Contact | None:
    for contact in contacts:
        if _overlaps(term, _normalize(contact.role)):
            return contact
    return None


def match_name_or_role_substring(term: str, contacts: list[Contact]) -> Contact | None:
    for contact in contacts:
        if term in _normalize(contact.full_name) or term in _normalize(contact.role):
            return contact
    return None


def match_email(term: str, contacts: list[Contact]) -> Contact | None:
    if "@" not in term:
        return None
    for contact in contacts:
        if _normalize(contact.email) == term:
            return contact
    return None


PROJECT_MATCHERS: tuple[ContactMatcher, ...] = (
    match_exact_name,
    match_role,
    match_partial_name,
    match_partial_role,
)
COMPANY_MATCHERS: tuple[ContactMatcher, ...] = (
    match_name_or_role_substring,
    match_email,
)


class ContactResolver:
    """Resolves a free-text name or role to a contact.

    Project contacts are tried first with progressively looser matchers, then the
    company's whole contact list. A miss is never an error.
    """

    def __init__(
        self,
        datastore: Datastore,
        project_matchers: tuple[ContactMatcher, ...] = PROJECT_MATCHERS,
        company_matchers: tuple[ContactMatcher, ...] = COMPANY_MATCHERS,
    ):
        """Initialize resolver.

        Args:
            datastore: Source of project and company contacts
            project_matchers: Ordered strategies applied to the project's contacts
            company_matchers: Ordered strategies applied to all of the company's contacts
        """
        self.datastore = datastore
        self.project_matchers = project_matchers
        self.company_matchers = company_matchers

    async def resolve_contact(self, name_or_role: str | None, project_id: str, company_id: str) -> Contact | None:
        """Find the best matching contact.

        Args:
            name_or_role: Free-text name, role, alias or email
            project_id: Project whose contacts are searched first
            company_id: Company scope; contacts outside it are never returned

        Returns:
            The matching contact, or None if nothing matches
        """
        term = _normalize(name_or_role)
        if not term:
            return None

        project = await self.datastore.get_project(project_id)
        if project is None or project.company_id != company_id:
            logger.warning(f"Skipping contact resolution: project {project_id} not in company {company_id}")
            return None

        project_contacts = [
            contact
            for contact in await self.datastore.list_project_contacts(project_id)
            if contact.company_id == company_id
        ]
        for matcher in self.project_matchers:
            contact = matcher(term, project_contacts)
            if contact:
                logger.debug(f"Resolved '{name_or_role}' to contact {contact.id} via {matcher.__name__}")
                return contact

        company_contacts = await self.datastore.list_company_contacts(company_id)
        for matcher in self.company_matchers:
            contact = matcher(term, company_contacts)
            if contact:
                logger.debug(f"Resolved '{name_or_role}' to company contact {contact.id} via {matcher.__name__}")
                return contact

        logger.info(f"No contact found for '{name_or_role}' on project {project_id}")
        return None

    async def resolve(self, name_or_role: str | None, project_id: str, company_id: str) -> str | None:
        """Resolve to a contact ID, or None if nothing matches."""
        contact = await self.resolve_contact(name_or_role, project_id, company_id)
        return contact.id if contact else None
