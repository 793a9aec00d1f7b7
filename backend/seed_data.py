"""Seed database with demo data."""
from twx.database import SessionLocal
from twx.models import User
from twx.schemas import ElementCreate, InspectionSave, ProjectCreate
from twx.use_cases.element_registry import register_element_use_case
from twx.use_cases.inspection_use_cases import save_inspection_use_case
from twx.use_cases.project_lifecycle import create_project_use_case


def seed():
    """Seed database with demo data."""
    db = SessionLocal()

    try:
        user = User(
            id="demo-user",
            email="site.engineer@example.com",
            first_name="Demo",
            last_name="Engineer",
            display_name="Demo Engineer",
            company="TWX Demo Contractor",
            title="Temporary Works Coordinator",
        )
        db.add(user)
        db.commit()

        projects_data = [
            {
                'name': 'Riverside Tower',
                'speckle_url': 'https://app.speckle.systems/projects/riverside01/models/main',
            },
            {
                'name': 'Harbour Bridge Refurbishment',
                'speckle_url': 'https://app.speckle.systems/projects/harbour02/models/main',
            },
        ]
        projects = [
            create_project_use_case(data=ProjectCreate(**project_data), db=db)
            for project_data in projects_data
        ]

        elements_data = [
            {
                'ifc_type': 'IfcColumn',
                'asset_type': 'Prop',
                'category': 'Propping',
                'description': 'Adjustable steel prop 3.0-4.5 m',
                'manufacturer': 'Acrow',
                'current_condition': 'Good',
                'speckle_element_id': 'riverside-col-001',
            },
            {
                'ifc_type': 'IfcColumn',
                'asset_type': 'Prop',
                'category': 'Propping',
                'description': 'Adjustable steel prop 3.0-4.5 m',
                'manufacturer': 'Acrow',
                'current_condition': 'Excellent',
                'speckle_element_id': 'riverside-col-002',
            },
            {
                'ifc_type': 'IfcBeam',
                'asset_type': 'Soldier',
                'category': 'Formwork',
                'description': 'Aluminium soldier beam 2.7 m',
                'current_condition': 'Fair',
            },
        ]
        elements = [
            register_element_use_case(
                data=ElementCreate(current_project_id=projects[0].id, **element_data),
                current_user=user,
                db=db,
            )
            for element_data in elements_data
        ]

        inspections_data = [
            {
                'element_id': 'riverside-col-001',
                'inspector': 'Demo Engineer',
                'status': 'OK',
                'notes': 'Base plate level, pins secure',
                'inspection_type': 'periodic',
            },
            {
                'element_id': 'riverside-col-002',
                'inspector': 'Demo Engineer',
                'status': 'ISSUE',
                'notes': 'Thread damage on inner tube',
                'inspection_type': 'periodic',
            },
        ]
        for inspection_data in inspections_data:
            save_inspection_use_case(
                data=InspectionSave(project_id=projects[0].id, **inspection_data),
                user_id=user.id,
                db=db,
            )

        print("✅ Database seeded successfully!")
        print("\nDemo projects:")
        for project in projects:
            print(f"  {project.id} {project.name}")
        print("\nDemo assets:")
        for element in elements:
            print(f"  {element.asset_number} ({element.qr_code})")

    except Exception as e:
        db.rollback()
        print(f"❌ Error seeding database: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    seed()
