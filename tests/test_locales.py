from __future__ import annotations

import unittest

from coralbot.locales import convert_language_code


class ConvertLanguageCodeTests(unittest.TestCase):
    def test_primary_subtag_decides_country(self) -> None:
        self.assertEqual(convert_language_code("en-US"), "en_gb")
        self.assertEqual(convert_language_code("pt-BR"), "pt_pt")
        self.assertEqual(convert_language_code("de"), "de_de")

    def test_underscore_and_case_are_normalized(self) -> None:
        self.assertEqual(convert_language_code("zh_Hant"), "zh_cn")
        self.assertEqual(convert_language_code(" ES "), "es_es")

    def test_unknown_language(self) -> None:
        self.assertIsNone(convert_language_code("xx-YY"))
        self.assertIsNone(convert_language_code(""))
        self.assertIsNone(convert_language_code(None))


if __name__ == "__main__":
    unittest.main()
