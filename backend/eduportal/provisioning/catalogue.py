"""
Artifacts created in every school's remote store.

Tables are created in list order so foreign keys resolve; every statement is
safe to re-run.
"""
from typing import Any, Dict, List, Tuple

_TS = "TIMESTAMP WITH TIME ZONE DEFAULT NOW()"

TABLES: List[Tuple[str, str]] = [
    ("users", f"""
        CREATE TABLE IF NOT EXISTS users (
            id BIGSERIAL PRIMARY KEY,
            username TEXT UNIQUE NOT NULL,
            name TEXT NOT NULL,
            email TEXT,
            password TEXT NOT NULL,
            role TEXT NOT NULL DEFAULT 'user',
            school_id TEXT,
            student_id INTEGER,
            credits INTEGER DEFAULT 0,
            is_active BOOLEAN DEFAULT true,
            last_login TIMESTAMP WITH TIME ZONE,
            profile_picture TEXT,
            phone_number TEXT,
            created_at {_TS},
            updated_at {_TS}
        );
    """),
    ("students", f"""
        CREATE TABLE IF NOT EXISTS students (
            id BIGSERIAL PRIMARY KEY,
            student_id TEXT UNIQUE NOT NULL,
            name TEXT NOT NULL,
            name_bn TEXT,
            father_name TEXT,
            mother_name TEXT,
            date_of_birth DATE,
            blood_group TEXT,
            phone TEXT,
            email TEXT,
            address TEXT,
            class_id INTEGER,
            section TEXT,
            roll_number INTEGER,
            admission_date DATE,
            status TEXT DEFAULT 'active',
            photo_url TEXT,
            guardian_name TEXT,
            guardian_phone TEXT,
            emergency_contact TEXT,
            created_at {_TS},
            updated_at {_TS}
        );
    """),
    ("teachers", f"""
        CREATE TABLE IF NOT EXISTS teachers (
            id BIGSERIAL PRIMARY KEY,
            teacher_id TEXT UNIQUE NOT NULL,
            name TEXT NOT NULL,
            name_bn TEXT,
            email TEXT,
            phone TEXT,
            subject TEXT,
            qualification TEXT,
            experience INTEGER,
            date_of_joining DATE,
            salary DECIMAL(10,2),
            status TEXT DEFAULT 'active',
            department TEXT,
            designation TEXT,
            address TEXT,
            photo_url TEXT,
            created_at {_TS},
            updated_at {_TS}
        );
    """),
    ("classes", f"""
        CREATE TABLE IF NOT EXISTS classes (
            id BIGSERIAL PRIMARY KEY,
            name TEXT UNIQUE NOT NULL,
            name_bn TEXT,
            level INTEGER,
            section TEXT,
            class_teacher_id INTEGER REFERENCES teachers(id),
            room_number TEXT,
            capacity INTEGER DEFAULT 30,
            description TEXT,
            is_active BOOLEAN DEFAULT true,
            created_at {_TS},
            updated_at {_TS}
        );
    """),
    ("subjects", f"""
        CREATE TABLE IF NOT EXISTS subjects (
            id BIGSERIAL PRIMARY KEY,
            name TEXT NOT NULL,
            name_bn TEXT,
            code TEXT UNIQUE,
            class_id INTEGER REFERENCES classes(id),
            teacher_id INTEGER REFERENCES teachers(id),
            credits INTEGER DEFAULT 1,
            is_active BOOLEAN DEFAULT true,
            created_at {_TS},
            updated_at {_TS}
        );
    """),
    ("attendance", f"""
        CREATE TABLE IF NOT EXISTS attendance (
            id BIGSERIAL PRIMARY KEY,
            student_id INTEGER REFERENCES students(id),
            class_id INTEGER REFERENCES classes(id),
            date DATE NOT NULL,
            status TEXT NOT NULL DEFAULT 'present',
            notes TEXT,
            marked_by INTEGER REFERENCES teachers(id),
            created_at {_TS},
            UNIQUE(student_id, date)
        );
    """),
    ("fees", f"""
        CREATE TABLE IF NOT EXISTS fees (
            id BIGSERIAL PRIMARY KEY,
            student_id INTEGER REFERENCES students(id),
            fee_type TEXT NOT NULL,
            amount DECIMAL(10,2) NOT NULL,
            due_date DATE,
            paid_date DATE,
            status TEXT DEFAULT 'pending',
            payment_method TEXT,
            receipt_number TEXT,
            academic_year TEXT,
            month TEXT,
            created_at {_TS},
            updated_at {_TS}
        );
    """),
    ("exams", f"""
        CREATE TABLE IF NOT EXISTS exams (
            id BIGSERIAL PRIMARY KEY,
            name TEXT NOT NULL,
            exam_type TEXT NOT NULL,
            class_id INTEGER REFERENCES classes(id),
            subject_id INTEGER REFERENCES subjects(id),
            exam_date DATE,
            start_time TIME,
            end_time TIME,
            total_marks INTEGER DEFAULT 100,
            passing_marks INTEGER DEFAULT 40,
            status TEXT DEFAULT 'scheduled',
            created_at {_TS},
            updated_at {_TS}
        );
    """),
    ("results", f"""
        CREATE TABLE IF NOT EXISTS results (
            id BIGSERIAL PRIMARY KEY,
            student_id INTEGER REFERENCES students(id),
            exam_id INTEGER REFERENCES exams(id),
            marks_obtained DECIMAL(5,2),
            grade TEXT,
            remarks TEXT,
            created_at {_TS},
            UNIQUE(student_id, exam_id)
        );
    """),
    ("library_books", f"""
        CREATE TABLE IF NOT EXISTS library_books (
            id BIGSERIAL PRIMARY KEY,
            isbn TEXT,
            title TEXT NOT NULL,
            author TEXT,
            publisher TEXT,
            category TEXT,
            total_copies INTEGER DEFAULT 1,
            available_copies INTEGER DEFAULT 1,
            location TEXT,
            purchase_date DATE,
            price DECIMAL(8,2),
            status TEXT DEFAULT 'available',
            created_at {_TS},
            updated_at {_TS}
        );
    """),
    ("library_transactions", f"""
        CREATE TABLE IF NOT EXISTS library_transactions (
            id BIGSERIAL PRIMARY KEY,
            book_id INTEGER REFERENCES library_books(id),
            borrower_id INTEGER,
            borrower_type TEXT NOT NULL,
            issue_date DATE NOT NULL,
            due_date DATE NOT NULL,
            return_date DATE,
            fine_amount DECIMAL(8,2) DEFAULT 0,
            status TEXT DEFAULT 'issued',
            created_at {_TS},
            updated_at {_TS}
        );
    """),
    ("events", f"""
        CREATE TABLE IF NOT EXISTS events (
            id BIGSERIAL PRIMARY KEY,
            title TEXT NOT NULL,
            description TEXT,
            event_date DATE NOT NULL,
            start_time TIME,
            end_time TIME,
            location TEXT,
            event_type TEXT,
            organizer TEXT,
            status TEXT DEFAULT 'scheduled',
            created_at {_TS},
            updated_at {_TS}
        );
    """),
    ("notifications", f"""
        CREATE TABLE IF NOT EXISTS notifications (
            id BIGSERIAL PRIMARY KEY,
            title TEXT NOT NULL,
            message TEXT NOT NULL,
            recipient_type TEXT NOT NULL,
            recipient_id INTEGER,
            sender_id INTEGER,
            is_read BOOLEAN DEFAULT false,
            notification_type TEXT DEFAULT 'info',
            data JSONB,
            created_at {_TS}
        );
    """),
    ("timetables", f"""
        CREATE TABLE IF NOT EXISTS timetables (
            id BIGSERIAL PRIMARY KEY,
            class_id INTEGER REFERENCES classes(id),
            subject_id INTEGER REFERENCES subjects(id),
            teacher_id INTEGER REFERENCES teachers(id),
            day_of_week INTEGER NOT NULL,
            start_time TIME NOT NULL,
            end_time TIME NOT NULL,
            room_number TEXT,
            academic_year TEXT,
            is_active BOOLEAN DEFAULT true,
            created_at {_TS},
            updated_at {_TS}
        );
    """),
]

REQUIRED_TABLES: List[str] = [name for name, _ in TABLES]

_IMAGES = ["image/*"]
_DOCUMENTS = ["application/pdf", "image/*"]

BUCKETS: List[Dict[str, Any]] = [
    {"name": "student-photos", "public": True, "allowed_mime_types": _IMAGES, "file_size_limit": 5 * 1024 * 1024},
    {"name": "teacher-photos", "public": True, "allowed_mime_types": _IMAGES, "file_size_limit": 5 * 1024 * 1024},
    {"name": "school-documents", "public": False, "allowed_mime_types": _DOCUMENTS, "file_size_limit": 10 * 1024 * 1024},
    {"name": "certificates", "public": False, "allowed_mime_types": _DOCUMENTS, "file_size_limit": 10 * 1024 * 1024},
    {"name": "exam-papers", "public": False, "allowed_mime_types": ["application/pdf"], "file_size_limit": 10 * 1024 * 1024},
    {"name": "library-covers", "public": True, "allowed_mime_types": _IMAGES, "file_size_limit": 2 * 1024 * 1024},
]

POLICIES: List[Tuple[str, str]] = [
    ("Enable RLS on users", "ALTER TABLE users ENABLE ROW LEVEL SECURITY;"),
    (
        "Users can view own data",
        """CREATE POLICY "Users can view own data" ON users
           FOR SELECT USING (auth.uid()::text = id::text OR role = 'admin');""",
    ),
    ("Enable RLS on students", "ALTER TABLE students ENABLE ROW LEVEL SECURITY;"),
    (
        "Authenticated users can view students",
        """CREATE POLICY "Authenticated users can view students" ON students
           FOR SELECT TO authenticated USING (true);""",
    ),
    ("Enable RLS on teachers", "ALTER TABLE teachers ENABLE ROW LEVEL SECURITY;"),
    (
        "Authenticated users can view teachers",
        """CREATE POLICY "Authenticated users can view teachers" ON teachers
           FOR SELECT TO authenticated USING (true);""",
    ),
    ("Enable RLS on classes", "ALTER TABLE classes ENABLE ROW LEVEL SECURITY;"),
    (
        "Authenticated users can view classes",
        """CREATE POLICY "Authenticated users can view classes" ON classes
           FOR SELECT TO authenticated USING (true);""",
    ),
]

DEFAULT_CLASSES: List[Dict[str, Any]] = [
    {"name": f"Class {level}", "level": level, "is_active": True} for level in range(1, 6)
]

DEFAULT_ADMIN_USERNAME = "admin"
