from django.db import models


class Metric(models.TextChoices):
    MARKS = 'MARKS', 'Marks'
    ABSENCES = 'ABSENCES', 'Absences'


class PaymentStatus(models.TextChoices):
    PAID = 'PAID', 'Paid'
    PARTIAL = 'PARTIAL', 'Partial'
    PENDING = 'PENDING', 'Pending'


class FeeType(models.TextChoices):
    TUITION = 'Tuition', 'Tuition'
    REGISTRATION = 'Registration', 'Registration'
    UNIFORM = 'Uniform', 'Uniform'
    EXAM = 'Exam', 'Exam'
    OTHER = 'Other', 'Other'


class PaymentMethod(models.TextChoices):
    CASH = 'cash', 'Cash'
    MOBILE_MONEY = 'mobile_money', 'Mobile Money'
    BANK_TRANSFER = 'bank_transfer', 'Bank Transfer'
    CHEQUE = 'cheque', 'Cheque'
