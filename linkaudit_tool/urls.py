from django.contrib import admin
from django.urls import path

admin.site.site_header = 'Link audit review'

urlpatterns = [
    path('admin/', admin.site.urls),
]
