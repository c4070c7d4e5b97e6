# backend/attendance_hub/seed/sample_data.py
"""
Fixed sample dataset copied into an empty store on first start.

Everything derives from seeded random.Random instances, so two processes (or
two runs) always generate identical departments, employees and attendance.
"""
from __future__ import annotations

import random
from datetime import date, timedelta
from typing import Any, Dict, List

SAMPLE_SEED = 20240115
EMPLOYEE_COUNT = 50
ATTENDANCE_EMPLOYEES = 20
ATTENDANCE_DAYS = 30

# (code, name, parent code)
DEPARTMENTS = (
    ("11D", "Jabatan Perkhidmatan Awam Negeri Sabah", None),
    ("11D-1", "Bahagian Pengurusan Sumber Manusia", "11D"),
    ("33J", "Jabatan Kerja Raya Sabah", None),
    ("25B", "Jabatan Perbendaharaan Negeri Sabah", None),
    ("280", "Jabatan Pendidikan Negeri Sabah", None),
    ("490", "Jabatan Kesihatan Negeri Sabah", None),
    ("190", "Jabatan Ketua Menteri", None),
)

EMPLOYEE_DEPARTMENTS = ("11D", "33J", "25B", "280", "490", "190")

NAMES = (
    "Ahmad Bin Abdullah", "Siti Nurhaliza Binti Mohamed", "Lim Wei Ming", "Tan Mei Ling",
    "Rajesh Kumar", "Priya Devi", "Wong Kar Wai", "Lee Siew Lan", "Muhammad Farid",
    "Nurul Ain Binti Hassan", "Chen Wei Jie", "Kavitha Devi", "Mohd Rizal Bin Omar",
    "Sarah Lim", "Raj Kumar Singh", "Amy Tan", "Azman Bin Ismail", "Linda Wong",
    "Suresh Kumar", "Mei Lin Tan", "Hafiz Bin Rahman", "Jessica Lim", "Kumar Raj",
    "Lily Chen", "Ismail Bin Ahmad", "Grace Wong", "Ravi Kumar", "Stephanie Tan",
    "Zulkifli Bin Hassan", "Michelle Lim", "Deepak Kumar", "Cindy Wong", "Faizal Bin Omar",
    "Jennifer Tan", "Sanjay Kumar", "Vivian Lim", "Rashid Bin Ali", "Karen Wong",
    "Vikram Singh", "Jasmine Tan", "Nazri Bin Yusof", "Samantha Lim", "Arjun Kumar",
    "Crystal Wong", "Hakim Bin Razak", "Melissa Tan", "Kiran Singh", "Wendy Lim",
    "Azhar Bin Mahmud", "Stephanie Wong", "Raj Singh", "Chloe Tan",
)

POSITIONS = (
    "Pegawai Tadbir", "Penolong Pegawai Tadbir", "Pembantu Tadbir", "Jurutera",
    "Penolong Jurutera", "Pembantu Jurutera", "Akauntan", "Penolong Akauntan",
    "Pembantu Akauntan", "Pegawai IT", "Pembantu IT", "Setiausaha", "Pemandu",
    "Kerani", "Pengawal Keselamatan", "Pembantu Am", "Pegawai Penyelidik",
    "Pegawai Perhubungan Awam", "Pegawai Sumber Manusia", "Pegawai Kewangan",
)

GRADES = ("JUSA C", "Gred 54", "Gred 52", "Gred 48", "Gred 44", "Gred 41", "Gred 38",
          "Gred 32", "Gred 29", "Gred 27", "Gred 22", "Gred 19", "Gred 17", "Gred 11")

WORK_LOCATIONS = (
    "Kompleks Pentadbiran Kerajaan Negeri", "Wisma Innoprise", "Menara Tun Mustapha",
    "Kompleks Karamunsing", "Pejabat Daerah", "Balai Raya", "Pusat Khidmat Rakyat",
)

RELATIONSHIPS = ("Spouse", "Parent", "Sibling", "Child")


def department_rows() -> List[Dict[str, Any]]:
    """Parents come before their sub-units."""
    return [{"dept_code": c, "dept_name": n, "parent_dept_code": p} for c, n, p in DEPARTMENTS]


def _phone(rng: random.Random) -> str:
    prefix = "01" if rng.random() < 0.5 else "08"
    return f"+6{prefix}{rng.randint(10000000, 99999999)}"


def employee_rows(count: int = EMPLOYEE_COUNT, seed: int = SAMPLE_SEED) -> List[Dict[str, Any]]:
    rng = random.Random(seed)
    rows = []
    for i in range(count):
        name = NAMES[i % len(NAMES)]
        malaysian = rng.random() > 0.1
        male = rng.random() > 0.45
        bumi = rng.random() > 0.35
        degree = rng.random() > 0.6

        if bumi:
            religion = "Islam" if rng.random() > 0.2 else "Christian"
        else:
            religion = rng.choice(("Christian", "Buddhist", "Hindu"))

        if rng.random() > 0.05:
            status = "Active"
        else:
            status = "On Leave" if rng.random() > 0.5 else "Inactive"

        rows.append({
            "employee_id": f"SG{i + 1:06d}",
            "name": name,
            "department_code": rng.choice(EMPLOYEE_DEPARTMENTS),
            "position": rng.choice(POSITIONS),
            "grade": rng.choice(GRADES),
            "email": "".join(ch if ch.isalpha() else "." for ch in name.lower()) + "@sabah.gov.my",
            "phone": _phone(rng),
            "join_date": date(2010 + rng.randrange(14), rng.randint(1, 12), rng.randint(1, 28)),
            "nationality": "Malaysian" if malaysian else "Non-Malaysian",
            "religion": religion,
            "gender": "Male" if male else "Female",
            "native_status": "Islamic Land" if bumi else "Non-Islamic Land",
            "education_level": "Degree" if degree else rng.choice(("Diploma", "SPM", "STPM")),
            "salary": 2500 + rng.randrange(8000),
            "status": status,
            "supervisor": rng.choice(NAMES),
            "work_location": rng.choice(WORK_LOCATIONS),
            "emergency_contact_name": rng.choice(NAMES),
            "emergency_contact_relationship": rng.choice(RELATIONSHIPS),
            "emergency_contact_phone": _phone(rng),
        })
    return rows


def attendance_rows(employee_pk: Any, employee_code: str, end: date,
                    days: int = ATTENDANCE_DAYS) -> List[Dict[str, Any]]:
    """
    Synthetic history for one employee over `days` days ending at `end`,
    newest first. Weekends are mostly skipped.

    The generator is seeded from the employee code and end date, so a rerun on
    the same day derives identical rows.
    """
    rng = random.Random(f"{employee_code}:{end.isoformat()}")
    rows = []
    for offset in range(days - 1, -1, -1):
        day = end - timedelta(days=offset)
        if day.weekday() >= 5 and rng.random() > 0.1:
            continue

        roll = rng.random()
        clock_in = clock_out = None
        hours = overtime = 0.0
        notes = None
        if roll > 0.95:
            status = "Absent"
        elif roll > 0.92:
            status = "Medical Leave"
            notes = "Medical Certificate submitted"
        elif roll > 0.88:
            status = "On Leave"
            notes = "Annual Leave"
        else:
            late = rng.random() > 0.85
            status = "Late" if late else "Present"
            in_h = 8 + rng.randrange(2) if late else 8
            in_m = rng.randrange(60)
            out_h = 17 + rng.randrange(3)
            out_m = rng.randrange(60)
            clock_in = f"{in_h:02d}:{in_m:02d}"
            clock_out = f"{out_h:02d}:{out_m:02d}"
            hours = max(0.0, round(out_h - in_h + (out_m - in_m) / 60, 1))
            if hours > 8:
                overtime = round(hours - 8, 1)

        rows.append({
            "employee_id": employee_pk,
            "date": day,
            "clock_in": clock_in,
            "clock_out": clock_out,
            "status": status,
            "hours_worked": hours,
            "overtime_hours": overtime,
            "location": "Main Office",
            "notes": notes,
        })
    rows.reverse()
    return rows
