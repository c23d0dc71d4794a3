import unittest
from sqlalchemy import inspect, text
from sqlalchemy.exc import SQLAlchemyError

from support import api_client, engine, reset_database

from fleet_maintenance.config import Settings


class TestDatabaseConnection(unittest.TestCase):
    def setUp(self):
        reset_database()

    def test_database_connection_success(self):
        """The test engine answers and every table is registered."""
        try:
            with engine.connect() as connection:
                value = connection.execute(text("SELECT 1")).scalar()
                self.assertEqual(value, 1)
        except SQLAlchemyError as e:
            self.fail(f"Database connection failed: {str(e)}")

        tables = set(inspect(engine).get_table_names())
        for table in ("maintenance_types", "equipments", "maintenance_records", "mileage_records",
                      "activities", "spare_parts", "maintenance_activities", "maintenance_spare_parts",
                      "activity_maintenance_types", "audit_logs", "maintenance_plans", "maintenance_stages"):
            self.assertIn(table, tables)

    def test_health(self):
        response = api_client().get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "ok")


class TestSettings(unittest.TestCase):

    def test_only_declared_switches(self):
        self.assertNotIn("APP_DEBUG", Settings.model_fields)
        self.assertFalse(hasattr(Settings(), "is_production"))

    def test_environment_drives_reload(self):
        self.assertTrue(Settings(APP_ENV="development").is_development)
        self.assertFalse(Settings(APP_ENV="production").is_development)


if __name__ == '__main__':
    unittest.main()
