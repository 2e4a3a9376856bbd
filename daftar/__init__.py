"""ورود و استخراج فعالیت‌های آموزشی دانش‌آموزان برای معلمان."""

__version__ = "0.1.0"
