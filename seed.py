import os

from testprep import create_app
from testprep.firebase_init import get_auth
from testprep import firestore_dao as dao
from testprep.firestore_models import Question, Test, TestQuestion, TestSeries


SAMPLE_QUESTIONS = [
    Question(
        type='mcq_single', subject='Physics', chapter='Mechanics', topic='Kinematics',
        subtopic='1D Motion', custom_id='PHY-KIN-001', tags=['free fall'], difficulty='easy',
        text='<p>A ball is dropped from rest. What is its speed after 2 s? (g = 9.8 m/s<sup>2</sup>)</p>',
        options=['9.8 m/s', '19.6 m/s', '4.9 m/s', '0 m/s'], correct_options=[1],
        explanation='<p>v = g t = 19.6 m/s</p>', marks=4, penalty=1,
    ),
    Question(
        type='mcq_multiple', subject='Chemistry', chapter='Organic Chemistry',
        topic='Hydrocarbons', subtopic='Alkenes', custom_id='CHE-HYD-001',
        tags=['unsaturation'], difficulty='medium',
        text='<p>Which of the following compounds decolourise bromine water?</p>',
        options=['Ethene', 'Ethane', 'Propene', 'Methane'], correct_options=[0, 2],
        marks=4, penalty=2,
    ),
    Question(
        type='numerical', subject='Mathematics', chapter='Calculus', topic='Integration',
        subtopic='Definite Integrals', custom_id='MAT-INT-001', difficulty='hard',
        text='<p>Evaluate the integral of 3x<sup>2</sup> from x = 0 to x = 2.</p>',
        correct_answer='8', marks=4, penalty=0,
    ),
]


def seed_database():
    app = create_app()
    with app.app_context():
        auth = get_auth()

        email = os.environ.get('SEED_ADMIN_EMAIL', 'admin@example.com')
        password = os.environ.get('SEED_ADMIN_PASSWORD', 'password123')

        print("Creating admin user...")
        try:
            fb_user = auth.create_user(email=email, password=password, display_name='Admin')
        except auth.EmailAlreadyExistsError:
            fb_user = auth.get_user_by_email(email)
        admin_uid = fb_user.uid
        dao.create_user(admin_uid, {'email': email, 'display_name': 'Admin', 'role': 'admin'})

        print("Creating questions...")
        question_ids = []
        for question in SAMPLE_QUESTIONS:
            data = question.to_dict()
            for key in ('created_by', 'created_at', 'updated_at'):
                data.pop(key)
            question_ids.append(dao.create_question(data, admin_uid))

        print("Creating test...")
        test = Test(
            title='Mixed Practice Test 1',
            description='One question from each subject.',
            duration_minutes=30,
            questions=[TestQuestion(question_id=qid, marks=4, negative_marks=1, order=i)
                       for i, qid in enumerate(question_ids)],
        )
        test_id = dao.create_test({
            'title': test.title,
            'description': test.description,
            'duration_minutes': test.duration_minutes,
            'questions': [tq.to_dict() for tq in test.ordered_questions()],
        }, admin_uid)

        print("Creating test series...")
        series = TestSeries(title='Starter Series', description='Free practice tests.',
                            test_ids=[test_id], price=0)
        series_id = dao.create_test_series({
            'title': series.title,
            'description': series.description,
            'test_ids': series.test_ids,
            'price': series.price,
        }, admin_uid)

        print("\n" + "=" * 60)
        print(f"  Admin login: {email} / {password}")
        print(f"  Questions:   {len(question_ids)}")
        print(f"  Test:        {test_id} ({test.question_count} questions, {test.total_marks:g} marks)")
        print(f"  Series:      {series_id}")
        print("=" * 60)
        print("Seed complete!")


if __name__ == '__main__':
    seed_database()
