"""
Unit tests for the CSV tokenizer.
"""
import unittest

from utils.csv_tokenizer import split_lines, tokenize_line


class TestTokenizeLine(unittest.TestCase):
    def test_quoted_comma_kept_in_field(self):
        self.assertEqual(tokenize_line('a,"b,c",d'), ["a", "b,c", "d"])

    def test_fields_trimmed(self):
        self.assertEqual(tokenize_line('  EURUSD , buy ,50 '), ["EURUSD", "buy", "50"])

    def test_single_quotes_stripped(self):
        self.assertEqual(tokenize_line("'EURUSD',1"), ["EURUSD", "1"])

    def test_trailing_empty_fields_kept(self):
        self.assertEqual(tokenize_line("a,b,,"), ["a", "b", "", ""])

    def test_quoted_thousands_separator(self):
        self.assertEqual(tokenize_line('GBPUSD,"1,234.50"'), ["GBPUSD", "1,234.50"])

    def test_empty_line(self):
        self.assertEqual(tokenize_line(""), [""])


class TestSplitLines(unittest.TestCase):
    def test_blank_lines_and_bom_dropped(self):
        text = "\ufeffsymbol,pnl\r\n\r\nEURUSD,5\r\n   \n"
        self.assertEqual(split_lines(text), ["symbol,pnl", "EURUSD,5"])


if __name__ == '__main__':
    unittest.main()
