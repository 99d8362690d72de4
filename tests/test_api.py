import unittest
from unittest import mock

from fastapi.testclient import TestClient

from nebresult.api.app import app, get_storage
from nebresult.services.report_service import ReportService
from nebresult.services.storage import Storage

from test_report_service import seed


class ApiTests(unittest.TestCase):
    def setUp(self):
        self.store = Storage(":memory:")
        self.ids = seed(self.store)
        app.dependency_overrides[get_storage] = lambda: self.store
        self.client = TestClient(app, raise_server_exceptions=False)

    def tearDown(self):
        app.dependency_overrides.clear()
        self.store.close()

    def test_health(self):
        res = self.client.get("/health")
        self.assertEqual((res.status_code, res.json()), (200, {"status": "ok"}))

    def test_student_gradesheet(self):
        res = self.client.get(f"/reports/student/{self.ids['hari']}", params={"exam_id": self.ids["exam"]})
        self.assertEqual(res.status_code, 200)
        body = res.json()
        self.assertEqual(body["gpa"], "3.40")
        self.assertEqual(body["student"]["first_name"], "Hari")
        self.assertEqual(body["subjects"][1]["final_grade"], "A+")

    def test_student_gradesheet_errors(self):
        res = self.client.get(f"/reports/student/{self.ids['hari']}")
        self.assertEqual((res.status_code, res.json()), (400, {"detail": "exam_id is required"}))
        self.assertEqual(self.client.get("/reports/student/abc", params={"exam_id": 1}).status_code, 422)
        res = self.client.get("/reports/student/999", params={"exam_id": self.ids["exam"]})
        self.assertEqual((res.status_code, res.json()), (404, {"detail": "Student not found"}))

    def test_class_gradesheets(self):
        res = self.client.get("/reports/class/11", params={"exam_id": self.ids["exam"], "faculty": "Science"})
        self.assertEqual(res.status_code, 200)
        self.assertEqual([r["student"]["registration_no"] for r in res.json()], ["R1", "R2"])

        res = self.client.get("/reports/class/11", params={"exam_id": 999})
        self.assertEqual((res.status_code, res.json()), (404, {"detail": "Exam not found"}))

    def test_unknown_route(self):
        self.assertEqual(self.client.get("/reports").status_code, 404)
        self.assertEqual(self.client.post("/health").status_code, 405)

    def test_unexpected_error_is_hidden(self):
        with mock.patch.object(ReportService, "student_gradesheet", side_effect=RuntimeError("boom")):
            res = self.client.get("/reports/student/1", params={"exam_id": 1})
        self.assertEqual((res.status_code, res.json()), (500, {"detail": "INTERNAL_SERVER_ERROR"}))

    def test_bulk_marks(self):
        subject_id = self.store.add_subject("Chemistry", 75, 25, 3, 1)
        payload = {
            "exam_id": self.ids["exam"],
            "subject_id": subject_id,
            "marks_data": [{"student_id": self.ids["hari"], "theory": 60, "practical": "20"}],
        }
        res = self.client.post("/marks/bulk", json=payload)
        self.assertEqual((res.status_code, res.json()), (200, {"status": "saved", "count": 1}))
        self.assertEqual(self.store.get_marks(self.ids["exam"], subject_id)[0]["practical_obtained"], 20.0)

        payload["marks_data"][0]["theory"] = 90
        res = self.client.post("/marks/bulk", json=payload)
        self.assertEqual(res.status_code, 400)
        self.assertIn("exceed limit (75)", res.json()["detail"])

        payload["marks_data"] = []
        self.assertEqual(self.client.post("/marks/bulk", json=payload).status_code, 422)

    def test_attendance(self):
        payload = {
            "date": "2081-01-20",
            "attendance_data": [
                {"student_id": self.ids["hari"], "status": "Absent"},
                {"student_id": self.ids["mina"], "status": "Present"},
            ],
        }
        res = self.client.post("/attendance", json=payload)
        self.assertEqual((res.status_code, res.json()), (200, {"status": "saved", "count": 2}))

        res = self.client.get("/attendance", params={"date": "2081-01-20", "class_level": 11, "faculty": "Science"})
        self.assertEqual(res.status_code, 200)
        self.assertEqual([(r["first_name"], r["status"]) for r in res.json()], [("Hari", "Absent"), ("Mina", "Present")])

        res = self.client.get("/attendance", params={"date": "2081-01-20"})
        self.assertEqual((res.status_code, res.json()), (400, {"detail": "Date, Class, and Faculty are required"}))

        payload["attendance_data"][0]["status"] = "Sick"
        self.assertEqual(self.client.post("/attendance", json=payload).status_code, 400)


if __name__ == "__main__":
    unittest.main()
