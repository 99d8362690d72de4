import logging
import unittest

from nebresult.config.logger import PACKAGE_LOGGER, configure_logging, get_logger
from nebresult.config.settings import settings


class LoggerTests(unittest.TestCase):
    def tearDown(self):
        configure_logging(settings.log_level)

    def test_children_share_the_package_logger(self):
        child = get_logger("storage")
        self.assertEqual(child.name, "nebresult.storage")
        self.assertIs(child.parent, get_logger())
        self.assertEqual(get_logger().name, PACKAGE_LOGGER)

    def test_level_is_applied(self):
        self.assertEqual(configure_logging("debug").level, logging.DEBUG)
        self.assertEqual(configure_logging("WARNING").level, logging.WARNING)
        self.assertEqual(configure_logging("chatty").level, logging.INFO)

    def test_handler_added_once(self):
        configure_logging("INFO")
        configure_logging("INFO")
        names = [h.get_name() for h in logging.getLogger(PACKAGE_LOGGER).handlers]
        self.assertEqual(names.count(PACKAGE_LOGGER), 1)

    def test_records_reach_package_handler(self):
        with self.assertLogs(PACKAGE_LOGGER, level="INFO") as captured:
            get_logger("report_service").info("Generated %d gradesheets", 3)
        self.assertEqual(captured.output, ["INFO:nebresult.report_service:Generated 3 gradesheets"])


if __name__ == "__main__":
    unittest.main()
