from django import forms


class RegistrationForm(forms.Form):
    username = forms.CharField(max_length=150)
    email = forms.EmailField(max_length=255)
    password = forms.CharField(min_length=8, strip=False)


class LoginForm(forms.Form):
    email = forms.EmailField(max_length=255)
    password = forms.CharField(strip=False)
