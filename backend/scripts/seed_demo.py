"""CLI script to create the admin account and demo students.
Usage: python scripts/seed_demo.py [--students N] [--branch EL] [--batch-yy 25]

Creates `ADMIN001` / `admin123` and N approved students `<yy><branch>001..`
with password `password123`. Existing IDs are left untouched, so the
script can be re-run safely.
"""
import sys
import argparse
import pathlib
# Ensure `backend/` is on sys.path so `peerfetch` package imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from sqlmodel import Session
from peerfetch.database import engine, create_db_and_tables
from peerfetch import services, repositories
from peerfetch.exceptions import DuplicateError

ADMIN_ID = 'ADMIN001'
ADMIN_PASSWORD = 'admin123'
STUDENT_PASSWORD = 'password123'
SAMPLE_SKILLS = ['Python', 'Circuit Design', 'MATLAB', 'Arduino', 'Web Development']
SAMPLE_ACTIVITIES = ['IEEE', 'TRS', 'TSA']


def main(students: int = 5, branch: str = 'EL', batch_yy: str = '25'):
    """Create tables, the admin account and `students` approved demo students."""
    create_db_and_tables()
    with Session(engine) as session:
        auth = services.AuthService(session)
        admin = auth.create_admin(ADMIN_ID, ADMIN_PASSWORD, 'Admin User', email='admin@peerfetch.local')
        print(f'Admin ready: {admin.student_id} / {ADMIN_PASSWORD}')
        admin_svc = services.AdminService(session)
        profiles = services.ProfileService(session)
        created = 0
        for i in range(1, students + 1):
            student_id = f'{batch_yy}{branch}{i:03d}'
            try:
                user = auth.register(student_id, STUDENT_PASSWORD, f'Student {i}')
            except DuplicateError:
                print(f'Skipping {student_id}: already registered')
                continue
            admin_svc.approve(admin, user.id)
            profiles.update(user, {
                'bio': f"Hi, I'm {user.branch_name} student number {i}!",
                'skills': SAMPLE_SKILLS[i % len(SAMPLE_SKILLS):] + SAMPLE_SKILLS[:1],
                'extracurriculars': SAMPLE_ACTIVITIES[: (i % len(SAMPLE_ACTIVITIES)) + 1],
            })
            created += 1
        total = len(repositories.UserRepository(session).list_approved())
        print(f'Created {created} students; {total} approved accounts in the directory')


if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    parser.add_argument('--students', type=int, default=5, help='Number of demo students to create')
    parser.add_argument('--branch', default='EL', help='Branch code for the demo students')
    parser.add_argument('--batch-yy', default='25', help='Two-digit batch year')
    args = parser.parse_args()
    main(students=args.students, branch=args.branch.upper(), batch_yy=args.batch_yy)
