from tracker.students import StudentInput

SEED_STUDENTS = (
    StudentInput(name="Alice Johnson", email="alice.johnson@example.com", phone="+1-555-0101", handle="tourist"),
    StudentInput(name="Bob Smith", email="bob.smith@example.com", phone="+1-555-0102", handle="Petr"),
    StudentInput(name="Charlie Brown", email="charlie.brown@example.com", phone="+1-555-0103", handle="Benq"),
    StudentInput(name="Diana Prince", email="diana.prince@example.com", phone="+1-555-0104", handle="jiangly"),
    StudentInput(name="Ethan Hunt", email="ethan.hunt@example.com", phone="+1-555-0105", handle="Um_nik"),
)
