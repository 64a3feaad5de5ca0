from django.shortcuts import redirect


def index(request):
    if request.user.is_authenticated:
        if request.user.role == 'ADMIN':
            return redirect('admin-users')
        elif request.user.role == 'FACULTY':
            return redirect('faculty-courses')
        elif request.user.role == 'STUDENT':
            return redirect('my-courses')
    return redirect('/admin/login/')
