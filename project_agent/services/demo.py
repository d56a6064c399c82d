"""Demo projects and contacts for local development."""

from project_agent.models.projects import Contact, Project
from project_agent.services.datastore import InMemoryDatastore

DEMO_COMPANY_ID = "company_demo"


def seed_demo_data(datastore: InMemoryDatastore) -> list[Project]:
    """Populate a datastore with two roofing projects and their stakeholders."""
    projects = [
        datastore.add_project(
            Project(
                id="project_maple",
                company_id=DEMO_COMPANY_ID,
                project_name="12 Maple St Reroof",
                crm_id="crm_1001",
                summary="Tear-off complete. Waiting on the homeowner to pick a shingle color.",
                next_step="Confirm shingle color with homeowner",
            )
        ),
        datastore.add_project(
            Project(
                id="project_oak",
                company_id=DEMO_COMPANY_ID,
                project_name="48 Oak Ave Solar + Roof",
                crm_id="crm_1002",
                summary="Roof install finished last week. Solar crew not yet scheduled.",
                next_step="Schedule solar install",
            )
        ),
    ]

    datastore.add_contact(
        Contact(
            id="contact_jane",
            company_id=DEMO_COMPANY_ID,
            full_name="Jane Doe",
            role="Homeowner",
            email="jane@example.com",
            phone_number="555-123-4567",
        ),
        project_ids=["project_maple"],
    )
    datastore.add_contact(
        Contact(
            id="contact_bob",
            company_id=DEMO_COMPANY_ID,
            full_name="Bob Smith",
            role="Project Manager",
            email="bob@example.com",
        ),
        project_ids=["project_maple", "project_oak"],
    )
    datastore.add_contact(
        Contact(
            id="contact_ray",
            company_id=DEMO_COMPANY_ID,
            full_name="Ray Alvarez",
            role="Roofer",
            phone_number="555-987-6543",
        ),
        project_ids=["project_maple", "project_oak"],
    )
    datastore.add_contact(
        Contact(
            id="contact_sol",
            company_id=DEMO_COMPANY_ID,
            full_name="Sam Lee",
            role="Solar Rep",
            email="sam@example.com",
        ),
        project_ids=["project_oak"],
    )
    return projects
