import unittest

from shared.utils import file_extension, mask_phone
from shared.validation import (
    check_upload,
    is_valid_date,
    is_valid_email,
    is_valid_id_card,
    is_valid_phone,
    is_valid_uuid,
    new_id,
    normalize_phone,
)


class ValidationTests(unittest.TestCase):
    def test_phone_numbers(self):
        self.assertTrue(is_valid_phone("13800138000"))
        self.assertFalse(is_valid_phone("12800138000"))
        self.assertFalse(is_valid_phone("1380013800"))
        self.assertEqual(normalize_phone("+86 138-0013-8000"), "13800138000")

    def test_id_cards_dates_and_emails(self):
        self.assertTrue(is_valid_id_card("11010519491231002X"))
        self.assertFalse(is_valid_id_card("1101051949123100"))
        self.assertTrue(is_valid_date("2024-02-29"))
        self.assertFalse(is_valid_date("2023-02-29"))
        self.assertFalse(is_valid_date("2023/01/01"))
        self.assertTrue(is_valid_email("a@b.cn"))
        self.assertFalse(is_valid_email("a@b"))
        self.assertTrue(is_valid_uuid(new_id()))

    def test_upload_checks(self):
        allowed = ("image/jpeg", "image/png")
        self.assertIsNone(check_upload("image/png", 1024, allowed, 5))
        self.assertEqual(check_upload("image/gif", 10, allowed, 5), "Only JPEG / PNG files are supported")
        self.assertEqual(
            check_upload("image/png", 6 * 1024 * 1024, allowed, 5), "File size cannot exceed 5MB"
        )

    def test_masking_and_extensions(self):
        self.assertEqual(mask_phone("13800138000"), "138****8000")
        self.assertEqual(mask_phone("123"), "123")
        self.assertEqual(file_extension("Photo.JPG"), "jpg")
        self.assertEqual(file_extension("noext"), "bin")
        self.assertEqual(file_extension("x./../../victim/evil"), "bin")
        self.assertEqual(file_extension("a.toolongext"), "bin")


if __name__ == "__main__":
    unittest.main()
